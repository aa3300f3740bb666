#!/usr/bin/env python3
"""
Independent OR-Tools CP-SAT model of a crystal box.

Used to cross-check the DP optimum: one boolean per crystal, one exclusion
per enforced connection, maximize total brightness. It shares nothing with
the DP except the box itself.
"""

import sys
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from ortools.sat.python import cp_model

from crystal_solver import CrystalBox, SolverInput


@dataclass
class CpSatResult:
    success: bool
    optimal: bool
    total: int
    cells: List[Tuple[int, int]]  # 1-based (row, col)
    stats: dict = None
    error: Optional[str] = None


def _add_exclusion(model: cp_model.CpModel, lit: dict, var, neighbour: Tuple[int, int]):
    other = lit.get(neighbour)
    if other is None:
        return  # No crystal there, nothing to collide with
    if other is var:
        model.Add(var == 0)  # Connected to itself through the wrap
    else:
        model.Add(var + other <= 1)


def build_model(box: CrystalBox) -> Tuple[cp_model.CpModel, Dict[Tuple[int, int], cp_model.IntVar]]:
    """
    The model:
    - Variables: lit[r,c] for every present crystal (0-based)
    - RIGHT flag: lit[r,c] + lit[r,(c+1)%C] <= 1
    - UP flag: lit[r,c] + lit[(r-1)%L,c] <= 1
    - Maximize sum(value * lit)
    """
    model = cp_model.CpModel()

    lit = {}
    for r in range(box.rows):
        for c in range(box.cols):
            if box.cell(r, c).present:
                lit[(r, c)] = model.NewBoolVar(f'lit_{r}_{c}')

    for (r, c), var in lit.items():
        connections = box.cell(r, c).connections
        if connections.right:
            _add_exclusion(model, lit, var, (r, (c + 1) % box.cols))
        if connections.up:
            _add_exclusion(model, lit, var, ((r - 1) % box.rows, c))

    if lit:
        model.Maximize(sum(box.cell(r, c).value * var for (r, c), var in lit.items()))

    return model, lit


def solve_box_cp_sat(input_data: SolverInput, max_time_seconds: float = 10.0) -> CpSatResult:
    """Solve the box with CP-SAT. Input is assumed to have passed diagnose_box()."""
    box = input_data.build_box()
    model, lit = build_model(box)

    if not lit:
        return CpSatResult(success=True, optimal=True, total=0, cells=[],
                           stats={'status': 'OPTIMAL', 'time_seconds': 0.0})

    solver = cp_model.CpSolver()
    solver.parameters.max_time_in_seconds = max_time_seconds
    solver.parameters.num_workers = 1  # Single worker keeps the search deterministic

    status = solver.Solve(model)

    stats = {
        'status': solver.StatusName(status),
        'time_seconds': solver.WallTime(),
        'branches': solver.NumBranches(),
        'conflicts': solver.NumConflicts(),
    }

    if status in (cp_model.OPTIMAL, cp_model.FEASIBLE):
        chosen = [(r, c) for (r, c), var in lit.items() if solver.Value(var)]
        # Same order as the DP reconstruction: bottom row first, right to left
        cells = sorted(((r + 1, c + 1) for r, c in chosen), reverse=True)
        total = sum(box.cell(r, c).value for r, c in chosen)
        return CpSatResult(
            success=True,
            optimal=(status == cp_model.OPTIMAL),
            total=total,
            cells=cells,
            stats=stats,
        )

    if input_data.verbose:
        print(f"DEBUG: CP-SAT finished with status {stats['status']}", file=sys.stderr, flush=True)

    return CpSatResult(
        success=False,
        optimal=False,
        total=0,
        cells=[],
        stats=stats,
        error=f"Solver status: {stats['status']}",
    )
