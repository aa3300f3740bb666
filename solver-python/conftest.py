import itertools

import pytest

from crystal_solver import CrystalBox


def selection_violations(box: CrystalBox, selected):
    """List every rule broken by a set of 0-based (row, col) cells."""
    problems = []
    for r, c in selected:
        crystal = box.cell(r, c)
        if not crystal.present:
            problems.append(f"({r},{c}) has no crystal")
        if crystal.connections.right and (r, (c + 1) % box.cols) in selected:
            problems.append(f"({r},{c}) RIGHT connection lit on both ends")
        if crystal.connections.up and ((r - 1) % box.rows, c) in selected:
            problems.append(f"({r},{c}) UP connection lit on both ends")
    return problems


def brute_force_total(box: CrystalBox) -> int:
    """Exhaustive maximum over every subset of present crystals."""
    present = [(r, c) for r in range(box.rows) for c in range(box.cols) if box.cell(r, c).present]
    best = 0
    for size in range(len(present) + 1):
        for subset in itertools.combinations(present, size):
            chosen = set(subset)
            if selection_violations(box, chosen):
                continue
            best = max(best, sum(box.cell(r, c).value for r, c in chosen))
    return best


@pytest.fixture
def brute_force():
    return brute_force_total


@pytest.fixture
def violations():
    return selection_violations
