"""
Audio validation and temporary storage
"""

import io
import os
import tempfile
from typing import Optional
from mutagen import File as MutagenFile
from claimdoc.config import settings
from claimdoc.core.exceptions import ValidationError
from claimdoc.core.logging import get_logger
from claimdoc.core.security import data_encryption

logger = get_logger(__name__)

CONTENT_TYPE_ALIASES = {
    "audio/mp3": "audio/mpeg",
    "audio/x-m4a": "audio/m4a",
    "audio/wave": "audio/wav",
    "video/webm": "audio/webm",
}


class AudioProcessor:
    """Audio validation and encrypted temporary storage"""

    def validate(self, audio_data: bytes, content_type: Optional[str], filename: Optional[str] = None) -> str:
        """
        Checks an upload before it is sent anywhere and returns its normalized content type.
        Payloads of exactly ``min_audio_bytes`` are accepted.
        """
        size = len(audio_data or b"")
        if size == 0:
            raise ValidationError("No audio data received.", {"size_bytes": 0})
        if size < settings.min_audio_bytes:
            raise ValidationError(
                f"Audio recording is too short ({size} bytes, minimum {settings.min_audio_bytes}).",
                {"size_bytes": size, "min_bytes": settings.min_audio_bytes},
            )
        if size > settings.max_file_size_bytes:
            raise ValidationError(
                f"Audio file exceeds the {settings.max_file_size_mb} MB limit.",
                {"size_bytes": size, "max_bytes": settings.max_file_size_bytes},
            )

        normalized = self.normalize_content_type(content_type)
        if normalized in (None, "application/octet-stream"):
            normalized = self._detect_content_type_from_data(audio_data, filename)

        if normalized not in settings.supported_audio_formats:
            logger.warning(f"Unsupported audio format: {content_type}. Supported: {settings.supported_audio_formats}")
            raise ValidationError(
                f"Unsupported audio format: {content_type}. Please use one of {settings.supported_audio_formats}",
                {"content_type": content_type},
            )

        logger.info(f"Validated {size} bytes of {normalized} audio.")
        return normalized

    @staticmethod
    def normalize_content_type(content_type: Optional[str]) -> Optional[str]:
        """Drops parameters such as ``;codecs=opus`` and maps aliases."""
        if not content_type:
            return None
        base = content_type.split(";", 1)[0].strip().lower()
        return CONTENT_TYPE_ALIASES.get(base, base)

    def save_encrypted(self, audio_data: bytes) -> str:
        """Encrypts the audio and writes it to a temporary file. Returns the file path."""
        encrypted_data = data_encryption.encrypt_data(audio_data)

        with tempfile.NamedTemporaryFile(delete=False, suffix=".enc") as temp_file:
            temp_file.write(encrypted_data)
            temp_file_path = temp_file.name
        logger.info(f"Encrypted audio saved temporarily to {temp_file_path}")
        return temp_file_path

    def read_decrypted(self, file_path: str) -> bytes:
        with open(file_path, "rb") as f:
            encrypted_data = f.read()
        return data_encryption.decrypt_data(encrypted_data)

    async def cleanup(self, file_path: Optional[str]):
        """Safely delete the temporary file."""
        if file_path and os.path.exists(file_path):
            try:
                os.unlink(file_path)
                logger.info(f"Cleaned up temporary file: {file_path}")
            except OSError as e:
                logger.error(f"Error cleaning up file {file_path}: {e}")

    @staticmethod
    def extension_for(content_type: str) -> str:
        """Maps content type to file extension."""
        return {
            "audio/mpeg": ".mp3",
            "audio/wav": ".wav",
            "audio/x-wav": ".wav",
            "audio/mp4": ".mp4",
            "audio/m4a": ".m4a",
            "audio/ogg": ".ogg",
            "audio/webm": ".webm",
        }.get(content_type, ".tmp")

    def _detect_content_type_from_data(self, audio_data: bytes, filename: Optional[str]) -> str:
        """Detects Content-Type based on file signature or filename."""
        # 'ftyp' sits a few bytes into MP4/M4A containers
        if b'ftyp' in audio_data[4:12]:
            logger.info("Detected content type: audio/mp4 (ftyp signature)")
            return "audio/mp4"

        signatures = {
            b'ID3': "audio/mpeg",
            b'\xff\xfb': "audio/mpeg",
            b'\xff\xf3': "audio/mpeg",
            b'\xff\xf2': "audio/mpeg",
            b'RIFF': "audio/wav",
            b'OggS': "audio/ogg",
            b'\x1a\x45\xdf\xa3': "audio/webm",  # EBML header
        }

        for signature, detected_type in signatures.items():
            if audio_data.startswith(signature):
                logger.info(f"Detected content type: {detected_type} (signature)")
                return detected_type

        if filename:
            ext_map = {
                '.mp3': 'audio/mpeg',
                '.wav': 'audio/wav',
                '.m4a': 'audio/mp4',
                '.mp4': 'audio/mp4',
                '.ogg': 'audio/ogg',
                '.webm': 'audio/webm',
            }
            _, ext = os.path.splitext(filename)
            if ext.lower() in ext_map:
                logger.info(f"Guessed content type from filename: {ext_map[ext.lower()]}")
                return ext_map[ext.lower()]

        logger.warning("Could not detect specific audio type. Falling back to 'application/octet-stream'.")
        return "application/octet-stream"

    def extract_duration(self, audio_data: bytes) -> Optional[float]:
        """Reads the duration with mutagen. Metadata is best effort."""
        try:
            audio = MutagenFile(io.BytesIO(audio_data))
        except Exception as e:
            logger.warning(f"Could not extract metadata using mutagen: {e}")
            return None
        if audio is None or not hasattr(audio.info, "length"):
            return None
        return float(audio.info.length)
