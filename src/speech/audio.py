from __future__ import annotations

import io

import numpy as np
import soundfile as sf

WHISPER_SAMPLE_RATE = 16000


def mulaw_decode(ulaw_bytes: bytes) -> np.ndarray:
    """Decode G.711 mu-law bytes to 16-bit PCM int16 numpy array."""

    data = np.frombuffer(ulaw_bytes, dtype=np.uint8)

    # Vectorized mu-law decode.
    mu = np.bitwise_not(data)
    sign = np.bitwise_and(mu, 0x80)
    exponent = np.right_shift(np.bitwise_and(mu, 0x70), 4)
    mantissa = np.bitwise_and(mu, 0x0F)

    magnitude = ((mantissa.astype(np.int32) << 1) + 33) << (exponent.astype(np.int32) + 2)
    pcm = magnitude.astype(np.int32) - 33
    pcm = np.where(sign != 0, -pcm, pcm)

    return pcm.astype(np.int16)


def pcm16_resample(pcm: np.ndarray, src_rate: int, dst_rate: int) -> np.ndarray:
    if src_rate == dst_rate:
        return pcm
    if pcm.size == 0:
        return pcm.astype(np.int16)

    x_old = np.arange(pcm.size, dtype=np.float32)
    x_new = np.linspace(0, pcm.size - 1, int(pcm.size * dst_rate / src_rate), dtype=np.float32)

    y_old = pcm.astype(np.float32)
    y_new = np.interp(x_new, x_old, y_old)

    return np.clip(y_new, -32768, 32767).astype(np.int16)


def is_wav_container(audio_bytes: bytes) -> bool:
    return audio_bytes[:4] == b"RIFF" and audio_bytes[8:12] == b"WAVE"


def caller_audio_to_float32(
    audio_bytes: bytes,
    *,
    encoding: str,
    sample_rate: int,
    dst_rate: int = WHISPER_SAMPLE_RATE,
) -> np.ndarray:
    """Decode a caller audio segment to mono float32 at `dst_rate`.

    WAV containers carry their own format; headerless payloads are read as
    `encoding` at `sample_rate`.
    """

    if is_wav_container(audio_bytes):
        with sf.SoundFile(io.BytesIO(audio_bytes), mode="r") as audio_file:
            audio = audio_file.read(dtype="int16")
            sample_rate = int(audio_file.samplerate)
        if audio.ndim > 1:
            audio = np.mean(audio, axis=1).astype(np.int16)  # convert to mono
        pcm = audio
    elif encoding == "MULAW":
        pcm = mulaw_decode(audio_bytes)
    else:
        # LINEAR16: little-endian signed 16-bit; drop a trailing odd byte.
        usable = len(audio_bytes) - (len(audio_bytes) % 2)
        pcm = np.frombuffer(audio_bytes[:usable], dtype="<i2").astype(np.int16)

    pcm = pcm16_resample(pcm, sample_rate, dst_rate)
    return pcm.astype(np.float32) / 32768.0
