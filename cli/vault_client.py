"""HTTP client for communicating with the vault server."""

import os
import re
import sys
import time
import uuid
from pathlib import Path
from typing import Optional
from urllib.parse import unquote

import httpx

from common.logging_config import get_logger
from cli.config import Config
from cli.constants import DOWNLOADS_DIR
from cli.utils import ProgressReader, clear_progress_line, format_file_size

logger = get_logger(__name__)

_FILENAME_RE = re.compile(r'filename="?([^";]+)"?')
_FILENAME_STAR_RE = re.compile(r"filename\*=UTF-8''([^;\s]+)", re.IGNORECASE)


def filename_from_header(header: str) -> Optional[str]:
    """Prefer the UTF-8 filename* parameter over the ASCII fallback."""
    match = _FILENAME_STAR_RE.search(header)
    if match:
        return unquote(match.group(1))
    match = _FILENAME_RE.search(header)
    return match.group(1) if match else None


ERROR_MESSAGES = {
    'FILE_NOT_FOUND': 'File not found on server.',
    'FILE_EXISTS': 'A file with this name is already stored.',
    'EMPTY_UPLOAD': 'No file was sent with the upload.',
    'BACKEND_ERROR': 'Storage backend rejected the request. Please try again later.',
    'INTEGRITY_ERROR': 'Stored data failed its integrity check (wrong key or corrupted chunk).',
    'STORE_ERROR': 'Metadata store failure on the server.',
}

STATUS_MESSAGES = {
    400: 'Bad request',
    404: 'Not found',
    409: 'Conflict',
    413: 'File too large',
    500: 'Server error',
    502: 'Bad gateway',
    503: 'Service unavailable',
}


class VaultClient:
    """HTTP client for the vault API with retry logic and error handling."""

    def __init__(self, config: Config):
        """
        Initialize vault client.

        Args:
            config: Configuration instance
        """
        self.config = config
        self.session = httpx.Client(
            base_url=config.get_base_url(),
            timeout=config.get_timeout()
        )
        self.request_id = None
        logger.info(f"Initialized VaultClient [base_url={config.get_base_url()}]")

    def _calculate_upload_timeout(self, file_size: int) -> float:
        """
        Calculate timeout for upload based on file size.

        Every 7 MiB chunk is paced and round-tripped to the backend by the
        server before the response is sent, so the timeout grows with size.

        Returns:
            Timeout in seconds (30s base + 2s per MiB)
        """
        size_mb = file_size / (1024 * 1024)
        return 30.0 + size_mb * 2.0

    def _resolve_download_path(self, output_path: Optional[str], filename: str) -> Path:
        """
        Pick the local destination for a download.

        Without output_path the file lands in downloads/<filename>; an
        existing directory as output_path receives <filename> inside it.
        """
        safe_name = Path(filename).name or "download.bin"
        if output_path:
            output_file = Path(output_path).expanduser()
            if output_file.is_dir():
                output_file = output_file / safe_name
        else:
            output_file = Path(DOWNLOADS_DIR) / safe_name

        output_file.parent.mkdir(parents=True, exist_ok=True)
        return output_file

    def _backoff(self, attempt: int, total: int, what: str) -> None:
        delay = self.config.get_retry_config()['retry_backoff_multiplier'] ** attempt
        logger.warning(f"{what} (attempt {attempt + 1}/{total}), retrying in {delay}s [request_id={self.request_id}]")
        time.sleep(delay)

    def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        max_retries: Optional[int] = None,
        **kwargs
    ) -> httpx.Response:
        """
        Send a request, retrying 5xx answers and network failures.

        4xx answers are returned at once. The last 5xx answer is returned
        once retries run out.

        Raises:
            ConnectionError: If the server never answered
        """
        if max_retries is None:
            max_retries = self.config.get_retry_config()['max_retries']
        attempts = max_retries + 1

        self.request_id = str(uuid.uuid4())
        kwargs.setdefault('headers', {})['X-Request-ID'] = self.request_id
        logger.debug(f"{method} {endpoint} [request_id={self.request_id}]")

        last_exception = None
        for attempt in range(attempts):
            try:
                response = self.session.request(method, endpoint, **kwargs)
            except (httpx.ConnectError, httpx.TimeoutException) as e:
                last_exception = e
                if attempt < max_retries:
                    self._backoff(attempt, attempts, f"{method} {endpoint} failed with {type(e).__name__}")
                continue

            if response.status_code >= 500 and attempt < max_retries:
                self._backoff(attempt, attempts, f"{method} {endpoint} returned {response.status_code}")
                continue
            if response.status_code >= 400:
                logger.warning(f"{method} {endpoint} status={response.status_code} [request_id={self.request_id}]")
            return response

        logger.error(f"{method} {endpoint} gave up after {attempts} attempt(s): {last_exception}")
        if isinstance(last_exception, httpx.TimeoutException):
            raise ConnectionError("Request timed out. Server may be overloaded.")
        raise ConnectionError("Cannot connect to vault server. Is it running?")

    def _format_error(self, response: httpx.Response) -> str:
        """Turn an error answer into one line for the terminal, preferring the server's code."""
        try:
            body = response.json()
            detail = body.get('detail', 'Unknown error')
            code = body.get('code', 'UNKNOWN')
        except ValueError:
            detail = response.text or 'Unknown error'
            code = 'UNKNOWN'

        if code in ERROR_MESSAGES:
            return ERROR_MESSAGES[code]

        message = STATUS_MESSAGES.get(response.status_code, detail)
        return message if code == 'UNKNOWN' else f"{message} (Code: {code})"

    def upload(self, file_path: str) -> str:
        """
        Upload a local file with progress feedback.

        Args:
            file_path: Path of the file to upload

        Returns:
            Formatted result message
        """
        path = Path(file_path).expanduser()
        if not path.exists():
            return f"Error: File not found: {file_path}"
        if not path.is_file():
            return f"Error: Not a file: {file_path}"

        file_size = os.path.getsize(path)
        upload_timeout = self._calculate_upload_timeout(file_size)
        logger.info(f"Uploading {path.name} ({file_size} bytes, timeout={upload_timeout:.1f}s)")

        try:
            with open(path, 'rb') as f:
                reader = ProgressReader(f, file_size, path.name)
                response = self.session.post(
                    '/api/upload',
                    files={'file': (path.name, reader, 'application/octet-stream')},
                    headers={'X-Request-ID': str(uuid.uuid4())},
                    timeout=upload_timeout
                )
        except httpx.ConnectError:
            clear_progress_line()
            return f"Error uploading {file_path}: Cannot connect to vault server"
        except httpx.TimeoutException:
            clear_progress_line()
            return (
                f"Error uploading {file_path}: Upload timed out "
                f"(file size: {format_file_size(file_size)}, timeout: {upload_timeout:.1f}s)"
            )
        except Exception as e:
            clear_progress_line()
            logger.error(f"Unexpected error uploading {file_path}: {e}", exc_info=True)
            return f"Error uploading {file_path}: {e}"

        if response.status_code == 200:
            result = response.json()
            return (
                f"Uploaded: {result['name']} "
                f"(ID: #{result['file_id']}, "
                f"Size: {format_file_size(result['size'])}, "
                f"Parts: {result['parts']})"
            )
        return f"Error uploading {file_path}: {self._format_error(response)}"

    def list_files(self) -> str:
        """
        List stored files.

        Returns:
            Formatted list of files
        """
        try:
            response = self._request_with_retry('GET', '/api/files')

            if response.status_code != 200:
                return f"Error: {self._format_error(response)}"

            files = response.json()
            if not files:
                return "Vault is empty."

            output = [f"Found {len(files)} file(s):\n"]
            for file_meta in files:
                output.append(
                    f"  #{file_meta['id']} {file_meta['name']}\n"
                    f"    Size: {format_file_size(file_meta['size'])}\n"
                    f"    SHA-256: {file_meta['hash']}\n"
                    f"    Created: {file_meta['created_at']}"
                )
            return '\n'.join(output)

        except ConnectionError as e:
            return f"Error: {e}"

    def download(self, file_id: int, output_path: Optional[str] = None) -> str:
        """
        Download a file by id with progress feedback.

        Args:
            file_id: Id of the file to download
            output_path: Optional destination file or directory

        Returns:
            Success message with download details
        """
        try:
            with self.session.stream('GET', f'/api/download/{file_id}') as response:
                if response.status_code != 200:
                    response.read()
                    return f"Error: {self._format_error(response)}"

                filename = filename_from_header(response.headers.get('Content-Disposition', '')) or f"file-{file_id}.bin"
                output_file = self._resolve_download_path(output_path, filename)

                downloaded = 0
                with open(output_file, 'wb') as f:
                    for chunk in response.iter_bytes():
                        f.write(chunk)
                        downloaded += len(chunk)
                        sys.stdout.write(
                            f"\rDownloading {filename}: {format_file_size(downloaded)}"
                        )
                        sys.stdout.flush()

                sys.stdout.write('\n')
                sys.stdout.flush()

            return f"Downloaded: {filename} ({format_file_size(downloaded)})\nSaved to: {output_file.absolute()}"

        except httpx.ConnectError:
            return "Error: Cannot connect to vault server. Is it running?"
        except httpx.TimeoutException:
            return "Error: Request timed out. Server may be overloaded."
        except httpx.HTTPError as e:
            clear_progress_line()
            return f"Error: Download interrupted: {e}"
        except IOError as e:
            return f"Error writing file: {e}"

    def delete(self, file_id: int) -> str:
        """
        Delete a file by id.

        Returns:
            Formatted result with the number of purged chunks
        """
        try:
            response = self._request_with_retry('POST', f'/api/delete/{file_id}', max_retries=0)

            if response.status_code != 200:
                return f"Error: {self._format_error(response)}"

            data = response.json()
            message = f"Deleted file #{data['file_id']} ({data['chunks']} chunk(s))."
            failed = data.get('failed_remote_deletes') or []
            if failed:
                message += f"\nWarning: {len(failed)} remote chunk(s) could not be removed."
            return message

        except ConnectionError as e:
            return f"Error: {e}"

    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()
