from bitarray import bitarray

# Bits are packed most-significant-bit first inside every byte.
ENDIAN = "big"
READ_CHUNK = 64 * 1024
# Number of buffered bits that triggers a write of the complete bytes.
WRITE_THRESHOLD = 8 * 64 * 1024


### BIT WRITER ###
class BitWriter:
    """Collects 0/1 bits and writes them to a binary file object packed into bytes."""

    def __init__(self, fileobj, owns_file=False):
        self.fileobj = fileobj
        self.owns_file = owns_file
        self.buffer = bitarray(endian=ENDIAN)
        self.bits_written = 0
        self.closed = False

    def write_bit(self, bit):
        if bit not in (0, 1):
            raise ValueError(f"Bit must be 0 or 1, got {bit!r}")
        self.buffer.append(bit)
        self.bits_written += 1
        if len(self.buffer) >= WRITE_THRESHOLD:
            self.flush()

    def write_bits(self, bits):
        """Append a code given as a bitarray, a '0'/'1' string or an iterable of ints."""
        if isinstance(bits, bitarray):
            chunk = bits
        elif isinstance(bits, str):
            try:
                chunk = bitarray(bits, endian=ENDIAN)
            except ValueError:
                raise ValueError(f"Invalid bit string {bits!r}") from None
        else:
            chunk = bitarray(endian=ENDIAN)
            for bit in bits:
                if bit not in (0, 1):
                    raise ValueError(f"Bit must be 0 or 1, got {bit!r}")
                chunk.append(bit)

        self.buffer.extend(chunk)
        self.bits_written += len(chunk)
        if len(self.buffer) >= WRITE_THRESHOLD:
            self.flush()

    def flush(self):
        """Write every complete byte; a trailing partial byte stays buffered."""
        whole = len(self.buffer) - len(self.buffer) % 8
        if whole:
            self.fileobj.write(self.buffer[:whole].tobytes())
            del self.buffer[:whole]
        self.fileobj.flush()

    def close(self):
        if self.closed:
            return
        self.closed = True
        try:
            self.flush()
            # tobytes() fills the unused low bits of the last byte with zeros
            if len(self.buffer):
                self.fileobj.write(self.buffer.tobytes())
                self.buffer.clear()
            self.fileobj.flush()
        finally:
            if self.owns_file:
                self.fileobj.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


### BIT READER ###
class BitReader:
    """Yields the bits of a binary file object as ints, MSB first, until EOF."""

    def __init__(self, fileobj, chunk_size=READ_CHUNK, owns_file=False):
        self.fileobj = fileobj
        self.chunk_size = chunk_size
        self.owns_file = owns_file

    def __iter__(self):
        while True:
            data = self.fileobj.read(self.chunk_size)
            if not data:
                return
            chunk = bitarray(endian=ENDIAN)
            chunk.frombytes(data)
            yield from chunk

    def close(self):
        if self.owns_file:
            self.fileobj.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def open_bit_writer(path):
    return BitWriter(open(path, "wb"), owns_file=True)


def open_bit_reader(path, chunk_size=READ_CHUNK):
    return BitReader(open(path, "rb"), chunk_size=chunk_size, owns_file=True)
