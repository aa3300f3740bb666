#!/usr/bin/env python3
"""
Flask API server for the Crimson Cipher solver.

Run with: python server.py
Then POST a box to: http://localhost:5000/solve
"""

import os
from flask import Flask, request, jsonify, Response
from flask_cors import CORS
from crystal_solver import (
    MAX_COLUMNS, InputError, format_solution, parse_box_json, parse_box_text, solve_box,
)

# =============================================================================
# Configuration
# =============================================================================

MAX_ROWS = int(os.environ.get('CRYSTAL_MAX_ROWS', 200))
MAX_CELLS = int(os.environ.get('CRYSTAL_MAX_CELLS', 10000))
PORT = int(os.environ.get('PORT', 5000))

# =============================================================================
# App Setup
# =============================================================================

app = Flask(__name__)

allowed_origins = os.environ.get('ALLOWED_ORIGINS', '*')
if allowed_origins != '*':
    allowed_origins = [o.strip() for o in allowed_origins.split(',')]
CORS(app, origins=allowed_origins)


def check_limits(rows, cols):
    """Return an error message if the box is too large for this server, else None."""
    if rows > MAX_ROWS:
        return f"Box has {rows} rows; this server accepts at most {MAX_ROWS}."
    if cols > MAX_COLUMNS:
        return f"Box has {cols} columns; this server accepts at most {MAX_COLUMNS}."
    if rows * cols > MAX_CELLS:
        return f"Box has {rows * cols} cells; this server accepts at most {MAX_CELLS}."
    return None


# =============================================================================
# Routes
# =============================================================================

@app.route('/health', methods=['GET'])
def health():
    """Health check endpoint."""
    return jsonify({
        "status": "ok",
        "max_columns": MAX_COLUMNS,
        "max_rows": MAX_ROWS,
    })


@app.route('/solve', methods=['POST'])
def solve():
    """
    Solve a crystal box.

    Request JSON:
    {
        "rows": 2,
        "cols": 2,
        "crystals": [
            {"x": 1, "y": 1, "value": 5, "right": 1, "up": 0, "left": 0, "down": 0}
        ],
        "verify": false      // Also cross-check with CP-SAT
    }

    A text/plain body in the 'L C N' + records format is accepted too.
    Add ?format=text to get the plain text answer back.
    """
    try:
        if request.mimetype == 'text/plain':
            solver_input = parse_box_text(request.get_data(as_text=True))
            verify = request.args.get('verify', '').lower() in ('1', 'true', 'yes')
        else:
            data = request.get_json(silent=True)
            if not data:
                return jsonify({"success": False, "error": "No JSON body provided"}), 400
            solver_input = parse_box_json(data)
            verify = bool(data.get('verify', False))
    except InputError as e:
        return jsonify({"success": False, "error": str(e)}), 400

    limit_error = check_limits(solver_input.rows, solver_input.cols)
    if limit_error:
        return jsonify({"success": False, "error": limit_error}), 400

    solver_input.verify = verify

    try:
        app.logger.info(f"Solving: {solver_input.rows}x{solver_input.cols} box, "
                        f"{len(solver_input.crystals)} crystals, verify={verify}")

        result = solve_box(solver_input)

        if not result.success:
            app.logger.info(f"Rejected: {result.error}")
            return jsonify(result.as_dict()), 400

        app.logger.info(f"Result: count={result.count}, total={result.total}, "
                        f"time={result.stats['time_seconds']}s")

        if request.args.get('format') == 'text':
            return Response(format_solution(result), mimetype='text/plain')
        return jsonify(result.as_dict())

    except Exception as e:
        app.logger.exception(f"Error: {e}")
        return jsonify({"success": False, "error": str(e)}), 500


# =============================================================================
# Main
# =============================================================================

if __name__ == '__main__':
    print(f"Starting Crimson Cipher Solver API on http://localhost:{PORT}")
    print("Endpoints:")
    print("  GET  /health - Health check")
    print("  POST /solve  - Solve a crystal box (JSON or text/plain)")
    print(f"Limits: {MAX_ROWS} rows, {MAX_COLUMNS} columns, {MAX_CELLS} cells")
    app.run(host='0.0.0.0', port=PORT, debug=True, threaded=False)
