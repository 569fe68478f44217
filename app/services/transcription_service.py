"""
Transcription providers for subtitle generation.

This module handles:
- WhisperX local transcription (GPU with automatic CPU fallback)
- OpenAI Whisper API transcription (verbose_json segments)

Both providers return the same shape: {"language", "segments", "provider",
"model", "transcription_time"} where each segment has start, end and text.
"""

import os
import time
from typing import List, Dict, Any, Optional

import requests

from app.config import (
    WHISPER_DEVICE,
    WHISPER_COMPUTE_TYPE,
    get_settings,
)

VALID_PROVIDERS = ["local", "openai"]


class TranscriptionError(Exception):
    """Transcription failed. `retryable` tells the queue worker whether to try again."""

    def __init__(self, message: str, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable


def _segments_from(result: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [
        {'start': segment['start'], 'end': segment['end'], 'text': segment['text']}
        for segment in result.get('segments', [])
    ]


def _transcribe_local(audio_file: str, language: Optional[str], model_size: str) -> Dict[str, Any]:
    try:
        import whisperx
    except ImportError as e:
        raise TranscriptionError(
            f"Local provider error: whisperX not installed - {str(e)}. Install the local-whisper extra or use provider=openai",
            retryable=False
        )

    # Use global device configuration detected at server startup
    device = WHISPER_DEVICE
    compute_type = WHISPER_COMPUTE_TYPE

    # Load model with automatic fallback to CPU if GPU fails
    try:
        model = whisperx.load_model(model_size, device, compute_type=compute_type, language=language)
    except Exception as e:
        model_load_error = str(e)
        if device not in ["cuda", "mps"]:
            raise TranscriptionError(
                f"Local provider error: Failed to load model '{model_size}' on {device.upper()} - {model_load_error}"
            )
        try:
            model = whisperx.load_model(model_size, "cpu", compute_type="int8", language=language)
            print(f"WARNING: {WHISPER_DEVICE.upper()} failed ({model_load_error}), fell back to CPU")
        except Exception as cpu_error:
            raise TranscriptionError(
                f"Local provider error: Failed to load model '{model_size}' on {WHISPER_DEVICE.upper()} "
                f"({model_load_error}) and CPU ({str(cpu_error)})"
            )

    try:
        audio = whisperx.load_audio(audio_file)
    except Exception as e:
        raise TranscriptionError(
            f"Local provider error: Failed to load audio - {str(e)}. Audio format may not be supported.",
            retryable=False
        )

    try:
        result = model.transcribe(audio, batch_size=16)
    except RuntimeError as e:
        if "out of memory" in str(e).lower():
            raise TranscriptionError(
                "Local provider error: Out of memory. Try smaller model (tiny/small) or use provider=openai"
            )
        raise TranscriptionError(f"Local provider error: Transcription failed - {str(e)}")

    if not result or 'segments' not in result:
        raise TranscriptionError(
            "Local provider error: Transcription returned no segments - audio may be silent or corrupted",
            retryable=False
        )

    return {
        "language": result.get('language', language or 'unknown'),
        "segments": _segments_from(result),
        "model": model_size,
    }


def _transcribe_openai(audio_file: str, language: Optional[str]) -> Dict[str, Any]:
    openai_key = get_settings().openai_api_key
    if not openai_key:
        raise TranscriptionError(
            "OpenAI provider error: OPENAI_API_KEY not configured in environment",
            retryable=False
        )

    data = {"model": "whisper-1", "response_format": "verbose_json"}
    if language:
        data["language"] = language

    try:
        with open(audio_file, 'rb') as f:
            response = requests.post(
                "https://api.openai.com/v1/audio/transcriptions",
                headers={"Authorization": f"Bearer {openai_key}"},
                files={"file": f},
                data=data,
                timeout=300
            )
    except requests.exceptions.Timeout:
        raise TranscriptionError("OpenAI provider error: Request timeout - API did not respond within 5 minutes")
    except requests.exceptions.ConnectionError as e:
        raise TranscriptionError(f"OpenAI provider error: Connection failed - {str(e)}")

    if response.status_code != 200:
        try:
            error_message = response.json().get('error', {}).get('message', response.text)
        except ValueError:
            error_message = response.text
        raise TranscriptionError(
            f"OpenAI API error (HTTP {response.status_code}): {error_message}",
            retryable=response.status_code == 429 or response.status_code >= 500
        )

    try:
        result = response.json()
    except ValueError:
        raise TranscriptionError("OpenAI provider error: Invalid JSON response")

    if 'segments' not in result:
        raise TranscriptionError("OpenAI provider error: Response missing segments - transcription incomplete")

    return {
        "language": result.get('language', language or 'unknown'),
        "segments": _segments_from(result),
        "model": "whisper-1",
    }


def transcribe_audio(
    audio_file: str,
    language: Optional[str] = None,
    provider: Optional[str] = None,
    model_size: Optional[str] = None
) -> Dict[str, Any]:
    """
    Transcribe an audio file into timed segments.

    Args:
        audio_file: Path to the extracted audio
        language: ISO language code, None for auto-detection
        provider: "local" (whisperX) or "openai" (Whisper API); defaults to WORKER_PROVIDER
        model_size: whisperX model size; defaults to WORKER_MODEL_SIZE

    Raises:
        TranscriptionError: on any provider failure
    """
    settings = get_settings()
    provider = provider or settings.worker_provider
    model_size = model_size or settings.worker_model_size

    if not os.path.exists(audio_file):
        raise TranscriptionError(f"Audio file not found: {audio_file}", retryable=False)

    if provider not in VALID_PROVIDERS:
        raise TranscriptionError(
            f"Invalid provider '{provider}'. Must be one of: {', '.join(VALID_PROVIDERS)}",
            retryable=False
        )

    transcribe_start = time.time()
    if provider == "local":
        result = _transcribe_local(audio_file, language, model_size)
    else:
        result = _transcribe_openai(audio_file, language)

    result["provider"] = provider
    result["transcription_time"] = round(time.time() - transcribe_start, 2)
    print(f"INFO: Transcribed {os.path.basename(audio_file)} with {provider} "
          f"({len(result['segments'])} segments, {result['transcription_time']}s)")
    return result
