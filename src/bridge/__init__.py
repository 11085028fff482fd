"""Per-call media bridge between Twilio Media Streams and an ElevenLabs agent.

One `MediaBridge` owns both sockets of a call; the translator maps frames
between the two protocols and the transfer orchestrator hands the caller to a
person through a Twilio conference.
"""
