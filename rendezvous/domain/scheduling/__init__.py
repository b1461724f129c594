"""One-on-one threads, re-proposals and escalation"""
