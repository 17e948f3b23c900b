"""
XMLTV now/next service

Fetches an XMLTV schedule, caches it in memory and answers
"what is on now / what is on next" for a channel.
"""
