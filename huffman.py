import argparse
import filecmp
import heapq
import io
import os
import sys

from bitarray import bitarray

from bitio import ENDIAN, BitReader, BitWriter, open_bit_reader, open_bit_writer

# --- CONSTANTS ---
CHUNK_SIZE = 64 * 1024
SYMBOL_COUNT = 256
# A lone symbol still needs one bit per occurrence in the stream.
SINGLE_SYMBOL_CODE = "0"
COMPRESSED_SUFFIX = ".huff"
CODES_SUFFIX = ".codes"


### ERRORS ###
class HuffmanError(Exception):
    """Base class for every codec failure that is not a plain I/O error."""


class EmptyInputError(HuffmanError):
    pass


class UnknownSymbolError(HuffmanError):
    def __init__(self, symbol):
        super().__init__(f"Byte {symbol} has no code in the code table")
        self.symbol = symbol


class CorruptTreeError(HuffmanError):
    pass


class CodeTableError(HuffmanError):
    pass


class TruncatedStreamError(HuffmanError):
    def __init__(self, expected, decoded):
        super().__init__(
            f"Compressed stream ended after {decoded} of {expected} symbols")
        self.expected = expected
        self.decoded = decoded


### HUFFMAN NODE CLASSES ###
class Leaf:
    """A byte value and the number of times it occurs."""
    def __init__(self, symbol, freq):
        self.symbol = symbol
        self.freq = freq

    def __repr__(self):
        return f"Leaf({self.symbol}, {self.freq})"


class Internal:
    """Owns exactly two subtrees; its frequency is the sum of theirs."""
    def __init__(self, left, right):
        self.left = left
        self.right = right
        self.freq = left.freq + right.freq

    def __repr__(self):
        return f"Internal({self.freq}, {self.left!r}, {self.right!r})"


### FREQUENCY COUNTING ###
def count_frequencies(stream, chunk_size=CHUNK_SIZE):
    """Reads a binary stream to exhaustion and counts each byte value.

    Only bytes that occur at least once appear in the returned dict.
    """
    counts = [0] * SYMBOL_COUNT
    chunk = stream.read(chunk_size)
    while chunk:
        for byte_int in chunk:
            counts[byte_int] += 1
        chunk = stream.read(chunk_size)

    return {symbol: count for symbol, count in enumerate(counts) if count}


### TREE AND CODE GENERATION ###
def build_tree(frequency):
    """
    Builds the Huffman tree for a symbol -> frequency mapping and returns its root.

    Leaves enter the min-heap in ascending symbol order. Every heap entry
    carries a sequence number after its frequency, so nodes with equal
    frequency leave the heap in the order they were created. The first node
    popped becomes the left child and the second the right child. Encoder
    and decoder both rebuild the tree through this function, which is why
    the ordering must never change.
    """
    if not frequency:
        raise EmptyInputError("Cannot build a Huffman tree without any symbols")

    priority_queue = []
    seq = 0
    for symbol in sorted(frequency):
        freq = frequency[symbol]
        if not 0 <= symbol < SYMBOL_COUNT:
            raise CodeTableError(f"Symbol {symbol} is outside 0..255")
        if freq < 1:
            raise CodeTableError(f"Symbol {symbol} has non-positive frequency {freq}")
        priority_queue.append((freq, seq, Leaf(symbol, freq)))
        seq += 1
    # seq breaks frequency ties in creation order
    heapq.heapify(priority_queue)

    while len(priority_queue) > 1:
        _, _, left = heapq.heappop(priority_queue)
        _, _, right = heapq.heappop(priority_queue)
        parent = Internal(left, right)
        heapq.heappush(priority_queue, (parent.freq, seq, parent))
        seq += 1

    return priority_queue[0][2]


def derive_codes(root):
    """Walks the tree depth first ('0' = left, '1' = right) and returns symbol -> code."""
    if isinstance(root, Leaf):
        return {root.symbol: SINGLE_SYMBOL_CODE}

    codes = {}
    # Explicit stack, a 256 leaf tree can be 255 levels deep
    stack = [(root, "")]
    while stack:
        node, code = stack.pop()
        if isinstance(node, Leaf):
            codes[node.symbol] = code
        elif isinstance(node, Internal):
            # A missing side is skipped without spending a bit on it
            if node.left is not None and node.right is None:
                stack.append((node.left, code))
            elif node.right is not None and node.left is None:
                stack.append((node.right, code))
            elif node.left is None and node.right is None:
                raise CorruptTreeError("Internal node without children")
            else:
                stack.append((node.right, code + "1"))
                stack.append((node.left, code + "0"))
        else:
            raise CorruptTreeError(f"Unexpected tree node {node!r}")

    return codes


### CODE TABLE FILE ###
def write_code_table(stream, frequency, codes):
    """Writes one '<symbol> <frequency> <code>' line per symbol, ascending by symbol."""
    for symbol in sorted(frequency):
        stream.write(f"{symbol} {frequency[symbol]} {codes[symbol]}\n")


def read_code_table(stream):
    """
    Parses a code table back into symbol -> frequency.

    The code column is optional and ignored: codes are re-derived from the
    rebuilt tree.
    """
    frequency = {}
    for line_number, line in enumerate(stream, start=1):
        fields = line.split()
        if not fields:
            continue
        if len(fields) not in (2, 3):
            raise CodeTableError(f"Line {line_number}: expected 2 or 3 fields, got {len(fields)}")
        try:
            symbol = int(fields[0])
            freq = int(fields[1])
        except ValueError:
            raise CodeTableError(f"Line {line_number}: symbol and frequency must be integers") from None
        if len(fields) == 3 and fields[2].strip("01"):
            raise CodeTableError(f"Line {line_number}: code must contain only 0 and 1")

        if not 0 <= symbol < SYMBOL_COUNT:
            raise CodeTableError(f"Line {line_number}: symbol {symbol} is outside 0..255")
        if freq < 1:
            raise CodeTableError(f"Line {line_number}: frequency must be positive")
        if symbol in frequency:
            raise CodeTableError(f"Line {line_number}: duplicate symbol {symbol}")
        frequency[symbol] = freq

    return frequency


### ENCODING ###
def encode_stream(source, codes, writer, chunk_size=CHUNK_SIZE):
    """Replaces every byte of `source` with its code and hands the bits to `writer`."""
    lookup = [None] * SYMBOL_COUNT
    for symbol, code in codes.items():
        lookup[symbol] = bitarray(code, endian=ENDIAN)

    chunk = source.read(chunk_size)
    while chunk:
        for byte_int in chunk:
            code = lookup[byte_int]
            if code is None:
                raise UnknownSymbolError(byte_int)
            writer.write_bits(code)
        chunk = source.read(chunk_size)


### DECODING ###
def decode_stream(bits, root, sink, total=None):
    """
    Walks the tree one bit at a time and writes a byte each time a leaf is hit.

    `total` is the number of symbols to produce, normally the sum of all
    frequencies (the root frequency). Decoding stops there, so the zero bits
    padding the last byte are never read as data. With `total=None` every
    bit is consumed and an incomplete trailing code is dropped.

    Returns the number of bytes written to `sink`.
    """
    decoded = bytearray()
    written = 0
    if total == 0:
        return 0

    current_node = root
    for bit in bits:
        if bit == 1:
            branch = "right"
        elif bit == 0:
            branch = "left"
        else:
            raise CorruptTreeError(f"Invalid bit value {bit!r} in compressed stream")

        if not isinstance(root, Leaf):
            current_node = getattr(current_node, branch)
            if current_node is None:
                raise CorruptTreeError(f"Missing {branch} child while decoding")
            if isinstance(current_node, Internal):
                continue
            if not isinstance(current_node, Leaf):
                raise CorruptTreeError(f"Unexpected tree node {current_node!r}")

        # Reached a leaf (a single-leaf tree reaches it on every bit)
        decoded.append(current_node.symbol)
        current_node = root
        if total is not None and written + len(decoded) == total:
            break
        if len(decoded) >= CHUNK_SIZE:
            sink.write(decoded)
            written += len(decoded)
            decoded.clear()

    sink.write(decoded)
    written += len(decoded)

    if total is not None and written < total:
        raise TruncatedStreamError(total, written)
    return written


### IN-MEMORY HELPERS ###
def compress(data):
    """Returns (code table text, packed bit bytes) for a bytes object."""
    frequency = count_frequencies(io.BytesIO(data))
    root = build_tree(frequency)
    codes = derive_codes(root)

    table = io.StringIO()
    write_code_table(table, frequency, codes)

    packed = io.BytesIO()
    with BitWriter(packed) as writer:
        encode_stream(io.BytesIO(data), codes, writer)
    return table.getvalue(), packed.getvalue()


def decompress(code_table, packed):
    """Inverse of compress: rebuilds the tree from the table text and decodes `packed`."""
    frequency = read_code_table(io.StringIO(code_table))
    root = build_tree(frequency)
    out = io.BytesIO()
    decode_stream(BitReader(io.BytesIO(packed)), root, out, total=root.freq)
    return out.getvalue()


### FILE OPERATIONS ###
class EncodeResult:
    """Summary of a finished encode_file call."""
    def __init__(self, original_size, compressed_size, symbols, bits):
        self.original_size = original_size
        self.compressed_size = compressed_size
        self.symbols = symbols
        self.bits = bits

    @property
    def saved_percent(self):
        if not self.original_size:
            return 0.0
        return 100 * (1 - self.compressed_size / self.original_size)

    def __repr__(self):
        return (f"EncodeResult(original_size={self.original_size}, "
                f"compressed_size={self.compressed_size}, symbols={self.symbols}, "
                f"bits={self.bits})")


def _remove_quietly(*paths):
    for path in paths:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass


def encode_file(original_path, code_path, compressed_path):
    """
    Compresses `original_path` in two passes.

    The first pass counts byte frequencies and writes the code table, the
    second pass re-reads the file and writes the packed codes. Outputs
    written before a failure are removed and the error is re-raised.
    """
    with open(original_path, "rb") as source:
        frequency = count_frequencies(source)

    root = build_tree(frequency)
    codes = derive_codes(root)

    # Only files this call opened for writing are removed on failure
    created = []
    try:
        with open(code_path, "w", encoding="ascii", newline="\n") as code_file:
            created.append(code_path)
            write_code_table(code_file, frequency, codes)

        with open(original_path, "rb") as source:
            with open_bit_writer(compressed_path) as writer:
                created.append(compressed_path)
                encode_stream(source, codes, writer)
                bits = writer.bits_written
    except BaseException:
        _remove_quietly(*created)
        raise

    return EncodeResult(
        original_size=root.freq,
        compressed_size=os.path.getsize(compressed_path),
        symbols=len(codes),
        bits=bits,
    )


def decode_file(compressed_path, code_path, output_path):
    """Rebuilds the tree from the code table and writes the decoded bytes.

    Returns the number of bytes written.
    """
    with open(code_path, "r", encoding="ascii") as code_file:
        frequency = read_code_table(code_file)
    root = build_tree(frequency)

    with open_bit_reader(compressed_path) as reader:
        with open(output_path, "wb") as output_file:
            try:
                return decode_stream(reader, root, output_file, total=root.freq)
            except BaseException:
                output_file.close()
                _remove_quietly(output_path)
                raise


### COMMAND LINE ###
def _parse_args(argv):
    parser = argparse.ArgumentParser(
        prog="huffman",
        description="Compress and decompress files with Huffman coding.")
    sub = parser.add_subparsers(dest="command", required=True)

    enc = sub.add_parser("encode", help="compress ORIGINAL")
    enc.add_argument("original")
    enc.add_argument("-c", "--codes", help="code table path (default ORIGINAL.codes)")
    enc.add_argument("-o", "--output", help="compressed path (default ORIGINAL.huff)")

    dec = sub.add_parser("decode", help="decompress COMPRESSED")
    dec.add_argument("compressed")
    dec.add_argument("-c", "--codes", help="code table path")
    dec.add_argument("-o", "--output", help="decompressed path")

    test = sub.add_parser("test", help="encode, decode and compare FILE")
    test.add_argument("file")

    return parser.parse_args(argv)


def _decode_defaults(compressed):
    """Default (code table, output) paths for a compressed file."""
    if compressed.endswith(COMPRESSED_SUFFIX):
        base = compressed[:-len(COMPRESSED_SUFFIX)]
        return base + CODES_SUFFIX, base
    return compressed + CODES_SUFFIX, compressed + ".out"


def main(argv=None):
    args = _parse_args(argv)

    try:
        if args.command == "encode":
            code_path = args.codes or args.original + CODES_SUFFIX
            compressed_path = args.output or args.original + COMPRESSED_SUFFIX
            result = encode_file(args.original, code_path, compressed_path)
            print(f"Original Size: {result.original_size} bytes")
            print(f"Compressed Size: {result.compressed_size} bytes")
            print(f"Compression achieved: {result.saved_percent:.2f}% reduction.")

        elif args.command == "decode":
            default_codes, default_output = _decode_defaults(args.compressed)
            code_path = args.codes or default_codes
            output_path = args.output or default_output
            if os.path.abspath(output_path) == os.path.abspath(args.compressed):
                output_path = args.compressed + ".out"
            written = decode_file(args.compressed, code_path, output_path)
            print(f"Successfully decompressed {args.compressed} to {output_path} ({written} bytes).")

        else:
            compressed_path = args.file + COMPRESSED_SUFFIX
            code_path = args.file + CODES_SUFFIX
            output_path = args.file + ".out"
            try:
                encode_file(args.file, code_path, compressed_path)
                decode_file(compressed_path, code_path, output_path)
                same = filecmp.cmp(args.file, output_path, shallow=False)
            finally:
                _remove_quietly(compressed_path, code_path, output_path)
            if not same:
                print("FAILURE: Decompressed file content MISMATCHES the original.")
                return 1
            print("SUCCESS: Decompressed file is IDENTICAL to the original.")

    except (HuffmanError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
