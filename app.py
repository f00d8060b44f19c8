import os
from flask import Flask, request, jsonify, send_file, url_for
from flask_cors import CORS
from werkzeug.utils import secure_filename

from huffman import (
    CODES_SUFFIX,
    COMPRESSED_SUFFIX,
    HuffmanError,
    decode_file,
    encode_file,
)

# -----------------------------------------------------------
# PATH CONFIGURATION
# -----------------------------------------------------------
BASE_DIR = os.path.abspath(os.path.dirname(__file__))
DATA_DIR = os.environ.get("HUFFMAN_DATA_DIR", os.path.join(BASE_DIR, "data"))
MAX_UPLOAD_MB = int(os.environ.get("HUFFMAN_MAX_UPLOAD_MB", "64"))

# -----------------------------------------------------------
# FLASK APP SETUP
# -----------------------------------------------------------
app = Flask(__name__)
app.config["DATA_DIR"] = DATA_DIR
app.config["MAX_CONTENT_LENGTH"] = MAX_UPLOAD_MB * 1024 * 1024
CORS(app)

# -----------------------------------------------------------
# HELPER FUNCTIONS
# -----------------------------------------------------------
def data_dir():
    path = app.config["DATA_DIR"]
    os.makedirs(path, exist_ok=True)
    return path


def save_upload(field):
    """Stores an uploaded file in the data directory and returns (filename, path)."""
    file = request.files.get(field)
    if not file or not file.filename:
        return None, None

    filename = secure_filename(file.filename)
    if not filename:
        return None, None
    path = os.path.join(data_dir(), filename)
    file.save(path)
    return filename, path


def error_response(message, status):
    return jsonify({"success": False, "error": message}), status

# -----------------------------------------------------------
# ROUTES
# -----------------------------------------------------------
@app.route("/")
def home():
    return jsonify({
        "service": "huffman",
        "endpoints": {
            "encode": "POST /encode (file)",
            "decode": "POST /decode (compressed, codes)",
            "download": "GET /download/<filename>",
        },
    })


@app.route("/encode", methods=["POST"])
def encode_route():
    try:
        filename, input_path = save_upload("file")
        if not filename:
            return error_response("No file uploaded", 400)

        compressed_filename = filename + COMPRESSED_SUFFIX
        codes_filename = filename + CODES_SUFFIX
        compressed_path = os.path.join(data_dir(), compressed_filename)
        codes_path = os.path.join(data_dir(), codes_filename)

        result = encode_file(input_path, codes_path, compressed_path)

        return jsonify({
            "success": True,
            "filename": filename,
            "compressed_filename": compressed_filename,
            "codes_filename": codes_filename,
            "original_size": result.original_size,
            "compressed_size": result.compressed_size,
            "distinct_symbols": result.symbols,
            "bits": result.bits,
            "saved_percent": round(result.saved_percent, 2),
            "download_compressed_url": url_for("download", filename=compressed_filename),
            "download_codes_url": url_for("download", filename=codes_filename),
        })

    except HuffmanError as e:
        return error_response(str(e), 400)
    except Exception:
        app.logger.exception("Error in /encode")
        return error_response("Internal server error", 500)


@app.route("/decode", methods=["POST"])
def decode_route():
    try:
        names = [secure_filename(request.files[field].filename or "")
                 for field in ("compressed", "codes") if field in request.files]
        if len(names) == 2 and names[0] and names[0] == names[1]:
            return error_response("'compressed' and 'codes' must have different filenames", 400)

        compressed_filename, compressed_path = save_upload("compressed")
        codes_filename, codes_path = save_upload("codes")
        if not compressed_filename or not codes_filename:
            return error_response("Both 'compressed' and 'codes' files are required", 400)

        if compressed_filename.endswith(COMPRESSED_SUFFIX):
            output_filename = compressed_filename[:-len(COMPRESSED_SUFFIX)]
        else:
            output_filename = compressed_filename + ".out"
        if output_filename in (compressed_filename, codes_filename) or not output_filename:
            output_filename = compressed_filename + ".out"
        output_path = os.path.join(data_dir(), output_filename)

        written = decode_file(compressed_path, codes_path, output_path)

        return jsonify({
            "success": True,
            "decompressed_filename": output_filename,
            "decompressed_size": written,
            "download_url": url_for("download", filename=output_filename),
        })

    except HuffmanError as e:
        return error_response(str(e), 400)
    except Exception:
        app.logger.exception("Error in /decode")
        return error_response("Internal server error", 500)


@app.route("/download/<filename>")
def download(filename):
    filename = secure_filename(filename)
    file_path = os.path.join(data_dir(), filename)

    if not filename or not os.path.isfile(file_path):
        return "File not found", 404

    return send_file(file_path, as_attachment=True, download_name=filename,
                     mimetype="application/octet-stream")

# -----------------------------------------------------------
if __name__ == "__main__":
    app.run(debug=True)
