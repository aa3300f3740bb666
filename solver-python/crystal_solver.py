#!/usr/bin/env python3
"""
Crimson Cipher crystal box solver using row-profile dynamic programming.

This solver finds the provably optimal set of crystals to light in an L x C box:
1. Cells without a crystal (brightness -1) can never be lit
2. Two lit crystals joined by a RIGHT connection are forbidden (columns wrap)
3. Two lit crystals joined by an UP connection are forbidden (rows wrap)
4. The total brightness of the lit crystals is maximized

KEY INSIGHT: every rule links a cell to its right or upper neighbour, so a row
only ever interacts with the row directly above it. A row is described by a
bitmask of lit columns (a "configuration") and the DP walks rows with the
bottom row's configuration (the "anchor") held fixed, which closes the
vertical wrap once row 0 is reached.
"""

import argparse
import json
import os
import sys
import time
from dataclasses import dataclass
from enum import IntFlag
from typing import Dict, List, NamedTuple, Optional, Tuple

# =============================================================================
# DOMAIN DEFINITIONS
# =============================================================================

ABSENT = -1  # Brightness of a cell that holds no crystal
DEAD = -1    # Value of an infeasible DP state

# Memo size is rows * 4**cols and the work is about rows * 8**cols
MAX_COLUMNS = int(os.environ.get('CRYSTAL_MAX_COLUMNS', 8))
MAX_WORK = int(os.environ.get('CRYSTAL_MAX_WORK', 2 ** 24))

# Field order of one crystal record in the text format: x y v d c e b
RECORD_FIELDS = ('x', 'y', 'value', 'right', 'up', 'left', 'down')
CONNECTION_FIELDS = ('right', 'up', 'left', 'down')


class Connections(IntFlag):
    """Connection flags of a crystal, one bit per direction."""
    NONE = 0
    RIGHT = 1
    UP = 2
    LEFT = 4
    DOWN = 8

    @classmethod
    def from_flags(cls, right: int = 0, up: int = 0, left: int = 0, down: int = 0) -> 'Connections':
        """Pack 0/1 flags into a mask. Anything other than 1 leaves the bit clear."""
        mask = cls.NONE
        for flag, member in zip((right, up, left, down), (cls.RIGHT, cls.UP, cls.LEFT, cls.DOWN)):
            if flag == 1:
                mask |= member
        return mask

    @property
    def right(self) -> bool:
        return bool(self & Connections.RIGHT)

    @property
    def up(self) -> bool:
        return bool(self & Connections.UP)

    @property
    def left(self) -> bool:
        return bool(self & Connections.LEFT)

    @property
    def down(self) -> bool:
        return bool(self & Connections.DOWN)


@dataclass(frozen=True)
class Crystal:
    value: int = ABSENT
    connections: Connections = Connections.NONE

    @property
    def present(self) -> bool:
        return self.value != ABSENT


class RowMasks(NamedTuple):
    """Column bitmasks derived from one row of crystals."""
    present: int  # Columns holding a crystal
    right: int    # Columns connected to their right neighbour
    up: int       # Columns connected to the cell above


class DPState(NamedTuple):
    """Best value reachable from a state and the upper-row configuration used."""
    value: int = DEAD
    predecessor: int = 0

    @property
    def dead(self) -> bool:
        return self.value == DEAD


DEAD_STATE = DPState()


class StateKey(NamedTuple):
    row: int
    config: int
    anchor: int


# =============================================================================
# GRID MODEL
# =============================================================================

class CrystalBox:
    """
    L x C box of crystals stored 0-based by (row, column).

    Rows are cyclic (row L-1 sits above row 0) and so are columns
    (column 0 sits to the right of column C-1).
    """

    def __init__(self, rows: int, cols: int):
        self.rows = rows
        self.cols = cols
        self.cells: List[List[Crystal]] = [[Crystal() for _ in range(cols)] for _ in range(rows)]
        self._masks: List[Optional[RowMasks]] = [None] * rows

    def place_crystal(self, row: int, col: int, value: int,
                      right: int = 0, up: int = 0, left: int = 0, down: int = 0):
        """
        Place a crystal at 1-based (row, col).

        Coordinates are not range-checked here; run diagnose_box() on
        untrusted input first.
        """
        self.cells[row - 1][col - 1] = Crystal(value, Connections.from_flags(right, up, left, down))
        self._masks[row - 1] = None

    def cell(self, row: int, col: int) -> Crystal:
        """Crystal at 0-based (row, col)."""
        return self.cells[row][col]

    def row_masks(self, row: int) -> RowMasks:
        masks = self._masks[row]
        if masks is None:
            present = right = up = 0
            for j, crystal in enumerate(self.cells[row]):
                bit = 1 << j
                if crystal.present:
                    present |= bit
                if crystal.connections.right:
                    right |= bit
                if crystal.connections.up:
                    up |= bit
            masks = RowMasks(present, right, up)
            self._masks[row] = masks
        return masks

    def right_neighbours(self, config: int) -> int:
        """Shift a configuration so bit j holds bit (j + 1) % C."""
        return (config >> 1) | ((config & 1) << (self.cols - 1))

    def row_value(self, row: int, config: int) -> int:
        return sum(self.cells[row][j].value for j in range(self.cols) if config >> j & 1)

    # -------------------------------------------------------------------------
    # Compatibility oracle
    # -------------------------------------------------------------------------

    def is_internally_consistent(self, row: int, config: int) -> bool:
        """Check that `config` lights no absent cell and no right-connected pair in `row`."""
        masks = self.row_masks(row)
        if config & ~masks.present:
            return False
        return not (config & self.right_neighbours(config) & masks.right)

    def are_compatible(self, row: int, lower: int, upper: int) -> bool:
        """
        Check that `lower` (used in `row`) and `upper` (used in the row above)
        never light both ends of an UP connection. The UP flag consulted is
        the one of the lower row's cell.
        """
        return not (lower & upper & self.row_masks(row).up)


# =============================================================================
# DP ENGINE
# =============================================================================

@dataclass
class Solution:
    total: int
    anchor: int
    cells: List[Tuple[int, int]]  # 1-based (row, col), bottom row first
    configs: List[int]            # Configuration used in each row, indexed by row

    @property
    def count(self) -> int:
        return len(self.cells)


class CipherSolver:
    """
    Memoised row-profile DP over (row, config, anchor) states.

    The box must be fully populated before the solver is built: per-row
    configuration tables are derived from it up front.
    """

    def __init__(self, box: CrystalBox, verbose: bool = False):
        self.box = box
        self.rows = box.rows
        self.cols = box.cols
        self.num_configs = 1 << box.cols
        self.verbose = verbose

        n = self.num_configs
        # memo[row][config][anchor], None until computed
        self._memo: List[List[List[Optional[DPState]]]] = [
            [[None] * n for _ in range(n)] for _ in range(self.rows)
        ]

        # Internally consistent configurations per row (ascending) and their brightness
        self._valid: List[List[int]] = []
        self._row_values: List[Dict[int, int]] = []
        for row in range(self.rows):
            valid = [c for c in range(n) if box.is_internally_consistent(row, c)]
            self._valid.append(valid)
            self._row_values.append({c: box.row_value(row, c) for c in valid})

        self.states_computed = 0
        self._solution: Optional[Solution] = None

    def _debug(self, message: str):
        if self.verbose:
            print(f"DEBUG: {message}", file=sys.stderr, flush=True)

    def lookup(self, key: StateKey) -> Optional[DPState]:
        """Memoised state for `key`, or None if it was never computed."""
        return self._memo[key.row][key.config][key.anchor]

    def state(self, row: int, config: int, anchor: int) -> DPState:
        """Best total for rows 0..row with `config` in `row` and `anchor` in row L-1."""
        cached = self._memo[row][config][anchor]
        if cached is not None:
            return cached

        result = self._evaluate(row, config, anchor)
        self._memo[row][config][anchor] = result
        self.states_computed += 1
        return result

    def _evaluate(self, row: int, config: int, anchor: int) -> DPState:
        row_values = self._row_values[row]
        if config not in row_values:
            return DEAD_STATE
        row_value = row_values[config]

        # Row 0 lies below row L-1: close the wrap against the anchor
        if row == 0:
            if not self.box.are_compatible(0, config, anchor):
                return DEAD_STATE
            return DPState(row_value, anchor)

        best = DEAD_STATE
        for upper in self._valid[row - 1]:
            if not self.box.are_compatible(row, config, upper):
                continue

            child = self.state(row - 1, upper, anchor)
            if child.dead:
                continue

            # Strict > keeps the smallest upper configuration on ties
            if child.value + row_value > best.value:
                best = DPState(child.value + row_value, upper)

        return best

    def solve(self) -> Solution:
        """Run the DP over every anchor and reconstruct the best layout."""
        if self._solution is not None:
            return self._solution

        start = time.time()
        best = DEAD_STATE
        best_anchor = -1
        last_row = self.rows - 1

        for anchor in range(self.num_configs):
            if anchor in self._row_values[last_row]:
                # Fill rows in increasing order so each state finds the row above memoised
                for row in range(last_row):
                    for config in self._valid[row]:
                        self.state(row, config, anchor)

            result = self.state(last_row, anchor, anchor)
            if result.value > best.value:
                best = result
                best_anchor = anchor
                self._debug(f"New best: anchor={anchor:0{self.cols}b}, value={result.value}")

        self._debug(f"DP complete: {self.states_computed} states in {time.time() - start:.3f}s")
        self._solution = self._reconstruct(best_anchor, best.value)
        return self._solution

    # =========================================================================
    # RECONSTRUCTION
    # =========================================================================

    def _reconstruct(self, anchor: int, total: int) -> Solution:
        cells = []
        configs = [0] * self.rows
        config = anchor

        for row in range(self.rows - 1, -1, -1):
            configs[row] = config
            for col in range(self.cols - 1, -1, -1):
                if config >> col & 1:
                    cells.append((row + 1, col + 1))

            config = self.lookup(StateKey(row, config, anchor)).predecessor

        return Solution(total=total, anchor=anchor, cells=cells, configs=configs)


# =============================================================================
# SOLVER INTERFACE
# =============================================================================

class InputError(ValueError):
    """Raised when box text or JSON cannot be parsed."""


@dataclass
class SolverInput:
    rows: int
    cols: int
    crystals: List[dict] = None  # [{x, y, value, right, up, left, down}, ...] 1-based
    declared_count: Optional[int] = None  # N from the header, if one was given
    verify: bool = False  # Also solve with CP-SAT and compare totals
    verbose: bool = False

    def __post_init__(self):
        if self.crystals is None:
            self.crystals = []

    def build_box(self) -> CrystalBox:
        box = CrystalBox(self.rows, self.cols)
        for c in self.crystals:
            box.place_crystal(c['x'], c['y'], c['value'],
                              c.get('right', 0), c.get('up', 0), c.get('left', 0), c.get('down', 0))
        return box

    def as_dict(self) -> dict:
        return {
            'rows': self.rows,
            'cols': self.cols,
            'count': len(self.crystals),
            'crystals': [{f: c.get(f, 0) for f in RECORD_FIELDS} for c in self.crystals],
        }


@dataclass
class SolverOutput:
    success: bool
    count: int
    total: int
    cells: List[Tuple[int, int]]  # 1-based (row, col) in reconstruction order
    stats: dict = None
    error: Optional[str] = None
    warnings: List[str] = None

    def as_dict(self) -> dict:
        output = {
            'success': self.success,
            'count': self.count,
            'total': self.total,
            'cells': [{'x': x, 'y': y} for x, y in self.cells],
            'stats': self.stats or {},
        }
        if self.error:
            output['error'] = self.error
            output['hints'] = (self.stats or {}).get('diagnostic_hints', [])
        if self.warnings:
            output['warnings'] = self.warnings
        return output


def diagnose_box(input_data: SolverInput) -> List[str]:
    """
    Check the input for anything the engine cannot handle.
    Returns a list of problems; an empty list means the box can be solved.
    """
    hints = []
    rows, cols = input_data.rows, input_data.cols

    if rows < 1 or cols < 1:
        hints.append(f"Box must have at least one row and one column (got {rows}x{cols}).")
    if cols > MAX_COLUMNS:
        hints.append(f"Box has {cols} columns but at most {MAX_COLUMNS} are supported "
                     f"(memory grows as rows * 4**cols).")
    elif rows >= 1 and cols >= 1 and rows * 8 ** cols > MAX_WORK:
        hints.append(f"Box of {rows}x{cols} needs about {rows * 8 ** cols} checks, over the "
                     f"budget of {MAX_WORK}; use fewer rows or columns.")
    if input_data.declared_count is not None and input_data.declared_count != len(input_data.crystals):
        hints.append(f"Header declares {input_data.declared_count} crystals but "
                     f"{len(input_data.crystals)} were given.")

    for i, c in enumerate(input_data.crystals, start=1):
        missing = [f for f in ('x', 'y', 'value') if f not in c]
        if missing:
            hints.append(f"Crystal #{i} is missing: {', '.join(missing)}")
            continue
        x, y, value = c['x'], c['y'], c['value']
        if not (1 <= x <= rows and 1 <= y <= cols):
            hints.append(f"Crystal #{i} at ({x},{y}) is outside the {rows}x{cols} box.")
        if value < ABSENT:
            hints.append(f"Crystal #{i} at ({x},{y}) has brightness {value}; "
                         f"brightness must be >= 0 (or -1 for no crystal).")
        bad = [f for f in CONNECTION_FIELDS if c.get(f, 0) not in (0, 1)]
        if bad:
            hints.append(f"Crystal #{i} at ({x},{y}) has connection flags outside {{0, 1}}: {', '.join(bad)}.")

    return hints


def connection_warnings(input_data: SolverInput) -> List[str]:
    """
    Report input quirks that are legal but probably unintended.
    Only RIGHT and UP flags are enforced, so LEFT/DOWN flags without a
    matching RIGHT/UP on the neighbour have no effect.
    """
    warnings = []
    rows, cols = input_data.rows, input_data.cols

    placed: Dict[Tuple[int, int], dict] = {}
    seen: Dict[Tuple[int, int], int] = {}
    for c in input_data.crystals:
        pos = (c['x'], c['y'])
        seen[pos] = seen.get(pos, 0) + 1
        placed[pos] = c

    for pos, times in seen.items():
        if times > 1:
            warnings.append(f"Crystal at ({pos[0]},{pos[1]}) placed {times} times; the last record wins.")

    for (x, y), c in placed.items():
        if c['value'] == ABSENT:
            continue
        if c.get('left', 0) == 1:
            nx, ny = x, (y - 2) % cols + 1
            neighbour = placed.get((nx, ny))
            if not neighbour or neighbour.get('right', 0) != 1:
                warnings.append(f"LEFT connection at ({x},{y}) is not mirrored by a RIGHT connection "
                                f"at ({nx},{ny}) and will be ignored.")
        if c.get('down', 0) == 1:
            nx, ny = x % rows + 1, y
            neighbour = placed.get((nx, ny))
            if not neighbour or neighbour.get('up', 0) != 1:
                warnings.append(f"DOWN connection at ({x},{y}) is not mirrored by an UP connection "
                                f"at ({nx},{ny}) and will be ignored.")

    return warnings


def solve_box(input_data: SolverInput) -> SolverOutput:
    """
    Solve for the brightest valid crystal selection.

    Args:
        input_data: Box dimensions, crystals and solve options

    Invalid input never raises; it comes back as success=False with the
    diagnostic hints in stats.
    """
    hints = diagnose_box(input_data)
    if hints:
        error_parts = ["Invalid crystal box."]
        for hint in hints:
            error_parts.append(f"\n  • {hint}")
        return SolverOutput(
            success=False,
            count=0,
            total=0,
            cells=[],
            stats={'diagnostic_hints': hints},
            error=''.join(error_parts),
        )

    warnings = connection_warnings(input_data)
    box = input_data.build_box()

    start = time.time()
    solver = CipherSolver(box, verbose=input_data.verbose)
    solution = solver.solve()
    elapsed = time.time() - start

    stats = {
        'time_seconds': round(elapsed, 4),
        'states_computed': solver.states_computed,
        'configurations': solver.num_configs,
        'anchor': solution.anchor,
    }

    if input_data.verify:
        from cp_sat_check import solve_box_cp_sat

        check = solve_box_cp_sat(input_data)
        stats['cp_sat_status'] = check.stats.get('status') if check.stats else None
        stats['cp_sat_total'] = check.total
        stats['cp_sat_agrees'] = check.optimal and check.total == solution.total
        if not stats['cp_sat_agrees']:
            print(f"WARNING: CP-SAT total {check.total} ({stats['cp_sat_status']}) "
                  f"differs from DP total {solution.total}", file=sys.stderr, flush=True)

    return SolverOutput(
        success=True,
        count=solution.count,
        total=solution.total,
        cells=solution.cells,
        stats=stats,
        warnings=warnings or None,
    )


# =============================================================================
# TEXT AND JSON I/O
# =============================================================================

def parse_box_text(text: str) -> SolverInput:
    """Parse 'L C N' followed by N records 'x y v d c e b'."""
    tokens = text.split()
    try:
        numbers = [int(t) for t in tokens]
    except ValueError as e:
        raise InputError(f"Non-integer token in input: {e}") from e

    if len(numbers) < 3:
        raise InputError("Missing header: expected 'L C N'.")

    rows, cols, count = numbers[:3]
    if count < 0:
        raise InputError(f"Crystal count must be non-negative (got {count}).")

    body = numbers[3:]
    width = len(RECORD_FIELDS)
    if len(body) < count * width:
        raise InputError(f"Expected {count} crystal records but input ends after "
                         f"{len(body) // width} complete record(s).")
    if len(body) > count * width:
        raise InputError(f"Unexpected {len(body) - count * width} trailing token(s) "
                         f"after {count} crystal records.")

    crystals = [dict(zip(RECORD_FIELDS, body[i:i + width])) for i in range(0, count * width, width)]
    return SolverInput(rows=rows, cols=cols, crystals=crystals, declared_count=count)


def _json_int(value) -> int:
    # Floats must be whole numbers
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"{value!r} is not an integer")
    return int(value)


def parse_box_json(data: dict) -> SolverInput:
    """Parse {rows, cols, crystals: [{x, y, value, right?, up?, left?, down?}], count?}."""
    if not isinstance(data, dict):
        raise InputError("Expected a JSON object.")
    for key in ('rows', 'cols'):
        if key not in data:
            raise InputError(f"Missing required field: {key}")

    records = data.get('crystals', [])
    if not isinstance(records, list):
        raise InputError("'crystals' must be a list.")

    crystals = []
    for i, raw in enumerate(records, start=1):
        if not isinstance(raw, dict):
            raise InputError(f"Crystal #{i} must be an object.")
        missing = [f for f in ('x', 'y', 'value') if f not in raw]
        if missing:
            raise InputError(f"Crystal #{i} is missing: {', '.join(missing)}")
        try:
            crystals.append({f: _json_int(raw.get(f, 0)) for f in RECORD_FIELDS})
        except (TypeError, ValueError) as e:
            raise InputError(f"Crystal #{i} has a non-integer field: {e}") from e

    try:
        rows, cols = _json_int(data['rows']), _json_int(data['cols'])
        count = _json_int(data['count']) if data.get('count') is not None else None
    except (TypeError, ValueError) as e:
        raise InputError(f"Box dimensions must be integers: {e}") from e

    return SolverInput(rows=rows, cols=cols, crystals=crystals, declared_count=count)


def format_solution(output: SolverOutput) -> str:
    lines = [f"{output.count} {output.total}"]
    lines.extend(f"{x} {y}" for x, y in output.cells)
    return '\n'.join(lines) + '\n'


def format_box_text(input_data: SolverInput) -> str:
    lines = [f"{input_data.rows} {input_data.cols} {len(input_data.crystals)}"]
    for c in input_data.crystals:
        lines.append(' '.join(str(c.get(f, 0)) for f in RECORD_FIELDS))
    return '\n'.join(lines) + '\n'


# =============================================================================
# CLI INTERFACE
# =============================================================================

def main(argv=None) -> int:
    """Read a box from a file or stdin, solve, write the answer to stdout."""
    parser = argparse.ArgumentParser(
        description='Crimson Cipher solver - brightest crystal selection by row-profile DP',
        epilog="Example: printf '1 1 1\\n1 1 5 0 0 0 0\\n' | python crystal_solver.py",
    )
    parser.add_argument('input', nargs='?', help='Input file (default: stdin)')
    parser.add_argument('--json', action='store_true', help='Read and write JSON instead of plain text')
    parser.add_argument('--verify', action='store_true', help='Cross-check the optimum with OR-Tools CP-SAT')
    parser.add_argument('--verbose', action='store_true', help='Print DEBUG progress to stderr')
    args = parser.parse_args(argv)

    if args.input:
        with open(args.input) as f:
            raw = f.read()
    else:
        raw = sys.stdin.read()

    try:
        if args.json:
            solver_input = parse_box_json(json.loads(raw))
        else:
            solver_input = parse_box_text(raw)
    except json.JSONDecodeError as e:
        print(json.dumps({"success": False, "error": f"Invalid JSON: {e}"}))
        return 1
    except InputError as e:
        if args.json:
            print(json.dumps({"success": False, "error": str(e)}))
        else:
            print(f"Error: {e}", file=sys.stderr)
        return 1

    solver_input.verify = args.verify
    solver_input.verbose = args.verbose

    result = solve_box(solver_input)

    for warning in result.warnings or []:
        print(f"WARNING: {warning}", file=sys.stderr)

    if args.json:
        print(json.dumps(result.as_dict(), indent=2))
    elif result.success:
        sys.stdout.write(format_solution(result))
    else:
        print(f"Error: {result.error}", file=sys.stderr)

    return 0 if result.success else 1


if __name__ == '__main__':
    sys.exit(main())
