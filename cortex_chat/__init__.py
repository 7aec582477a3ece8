"""
Cortex Chat - Text and voice conversations with remote LLMs.

A session core that keeps persisted conversation history, builds the message
sequence for each turn, switches between Groq and Gemini models and prompt
templates, and drives a voice loop using WhisperKit for STT and ElevenLabs
for TTS.
"""

__version__ = "1.0.0"
