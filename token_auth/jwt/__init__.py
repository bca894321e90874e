"""
Compact JWT handling: structural decoding and signature verification.
"""
