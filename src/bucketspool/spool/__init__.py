"""
Spooling core: cursor codec, lister, tracker, post-processing, validation and
the batch producer.
"""
