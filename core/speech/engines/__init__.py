"""Speech engine implementations.

Importing this package registers every engine with `SpeechEngine` under its engine name.

Modules:
- GoogleSpeechEngine: Google Text-to-Speech, decoded in memory and played through PyAudio.
- NativeSpeechEngine: The operating system's synthesiser through pyttsx3.
"""

from core.speech.engines.g_tts import GoogleSpeechEngine
from core.speech.engines.pyttsx3_engine import NativeSpeechEngine

__all__: list[str] = ["GoogleSpeechEngine", "NativeSpeechEngine"]
