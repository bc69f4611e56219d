"""
SpeechTask: asynchronous speech-to-text / text-to-speech task pipeline.
"""
