"""Read adapters for the blob codecs.

A blob is stored either raw, gzip-compressed (legacy) or in the snappy
framing format (current). The codec is chosen by file suffix only; the
payload bytes are never sniffed.
"""

import gzip
import io
import zlib
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Protocol

import snappy

from asset_store.errors import CodecError

READ_CHUNK_SIZE = 64 * 1024

# stream identifier chunk: type 0xff, length 6, "sNaPpY"
STREAM_IDENTIFIER = b"\xff\x06\x00\x00sNaPpY"


class Decoder(Protocol):
    def read(self, size: int = -1) -> bytes: ...


@dataclass(frozen=True)
class Codec:
    name: str
    suffix: str
    open: Callable[[BinaryIO], Decoder]
    errors: tuple[type[BaseException], ...] = ()


class SnappyFrameReader:
    """Incremental decoder for the snappy framing format.

    ``snappy.StreamDecompressor`` has no close of its own, so the backing
    file stays owned by the caller. The decompressor neither insists on the
    stream identifier nor reports a partial trailing frame, so both are
    checked here.
    """

    def __init__(self, source: BinaryIO) -> None:
        self._source = source
        self._decompressor = snappy.StreamDecompressor()
        self._buffer = bytearray()
        self._pending = b""
        self._header_checked = False
        self._eof = False

    def _decompress(self, data: bytes) -> bytes:
        try:
            return self._decompressor.decompress(data)
        except snappy.UncompressError:
            raise
        except (OSError, ValueError) as exc:
            # cramjam reports corrupt chunk data as a plain OSError
            raise snappy.UncompressError(str(exc)) from exc

    def _feed(self, chunk: bytes) -> None:
        if not self._header_checked:
            self._pending += chunk
            if len(self._pending) < len(STREAM_IDENTIFIER):
                return
            if not self._pending.startswith(STREAM_IDENTIFIER):
                raise snappy.UncompressError("stream missing snappy identifier")
            self._header_checked = True
            chunk, self._pending = self._pending, b""
        self._buffer += self._decompress(chunk)

    def _finish(self) -> None:
        self._eof = True
        if self._pending:
            raise snappy.UncompressError("stream truncated inside the snappy identifier")
        self._decompressor.flush()
        if getattr(self._decompressor, "remains", None):
            raise snappy.UncompressError("stream truncated inside a snappy frame")

    def read(self, size: int = -1) -> bytes:
        while not self._eof and (size < 0 or len(self._buffer) < size):
            chunk = self._source.read(READ_CHUNK_SIZE)
            if not chunk:
                self._finish()
                break
            self._feed(chunk)

        if size < 0 or size > len(self._buffer):
            size = len(self._buffer)
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data


def _open_raw(source: BinaryIO) -> Decoder:
    return source


def _open_gzip(source: BinaryIO) -> Decoder:
    # GzipFile.close() leaves a caller-supplied fileobj open
    return gzip.GzipFile(fileobj=source, mode="rb")


RAW = Codec(name="raw", suffix="", open=_open_raw)
GZIP = Codec(
    name="gzip",
    suffix=".gz",
    open=_open_gzip,
    errors=(gzip.BadGzipFile, EOFError, zlib.error),
)
SNAPPY = Codec(
    name="snappy",
    suffix=".snappy",
    open=SnappyFrameReader,
    errors=(snappy.UncompressError,),
)

# Probe priority: legacy raw, legacy gzip, then the current codec.
CODECS: tuple[Codec, ...] = (RAW, GZIP, SNAPPY)
CURRENT_CODEC = SNAPPY


class CodecReader(io.RawIOBase):
    """Codec-agnostic binary stream over one blob file.

    ``close()`` tears down the decoder and then the backing file, exactly
    once, whichever codec was selected.
    """

    def __init__(self, file: BinaryIO, codec: Codec) -> None:
        super().__init__()
        self.codec = codec
        self.name = getattr(file, "name", None)
        self._file = file
        try:
            self._decoder = codec.open(file)
        except BaseException:
            file.close()
            super().close()
            raise

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed blob reader")
        try:
            data = self._decoder.read(len(buffer))
        except self.codec.errors as exc:
            raise CodecError(f"Corrupt {self.codec.name} stream in {self.name}: {exc}") from exc
        count = len(data)
        buffer[:count] = data
        return count

    def close(self) -> None:
        if self.closed:
            return
        try:
            if self._decoder is not self._file:
                close_decoder = getattr(self._decoder, "close", None)
                if close_decoder is not None:
                    close_decoder()
        finally:
            self._file.close()
            super().close()


def open_blob(path: Path, codec: Codec) -> CodecReader:
    return CodecReader(path.open("rb"), codec)


def codec_for_path(path: Path) -> Codec:
    for codec in (GZIP, SNAPPY):
        if path.name.endswith(codec.suffix):
            return codec
    return RAW


def write_snappy(source: BinaryIO, handle: BinaryIO) -> None:
    snappy.stream_compress(source, handle)
