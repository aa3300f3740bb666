#!/usr/bin/env python3
"""
Generate random crystal boxes together with their optimal answers.
Runs the solver on each random box and saves (input, solution) pairs.

Usage:
  python generate_boxes.py --count 100 --rows 6 --cols 5 --output boxes.json
  python generate_boxes.py --count 20 --format text --output fixtures/
"""

import argparse
import json
import random
import time
from pathlib import Path
from crystal_solver import SolverInput, solve_box, format_box_text, format_solution, MAX_COLUMNS


def random_box(rows, cols, density=0.7, max_value=9, connection_rate=0.3, rng=None):
    """
    Build a random box. Every connection is mirrored on the neighbour
    (RIGHT on one side, LEFT on the other; UP below, DOWN above) the way
    well-formed puzzle input describes it.
    """
    rng = rng or random.Random()

    grid = {}
    for x in range(1, rows + 1):
        for y in range(1, cols + 1):
            if rng.random() < density:
                grid[(x, y)] = {'x': x, 'y': y, 'value': rng.randint(0, max_value),
                                'right': 0, 'up': 0, 'left': 0, 'down': 0}

    for (x, y), crystal in grid.items():
        right_pos = (x, y % cols + 1)
        if right_pos in grid and rng.random() < connection_rate:
            crystal['right'] = 1
            grid[right_pos]['left'] = 1

        upper_pos = ((x - 2) % rows + 1, y)
        if upper_pos in grid and rng.random() < connection_rate:
            crystal['up'] = 1
            grid[upper_pos]['down'] = 1

    crystals = [grid[pos] for pos in sorted(grid)]
    return SolverInput(rows=rows, cols=cols, crystals=crystals, declared_count=len(crystals))


def generate_sample(sample_id, rows, cols, density=0.7, max_value=9, connection_rate=0.3,
                    verify=False, rng=None):
    """Generate one solved sample, or None if the solver rejected the box."""
    solver_input = random_box(rows, cols, density, max_value, connection_rate, rng)
    solver_input.verify = verify

    start = time.time()
    result = solve_box(solver_input)
    solve_time = time.time() - start

    if not result.success:
        return None

    return {
        'id': sample_id,
        'input': solver_input.as_dict(),
        'output': {
            'count': result.count,
            'total': result.total,
            'cells': [{'x': x, 'y': y} for x, y in result.cells],
        },
        'meta': {
            'solve_time': round(solve_time, 4),
            'states_computed': result.stats['states_computed'],
            'cp_sat_agrees': result.stats.get('cp_sat_agrees'),
        },
        '_input': solver_input,
        '_result': result,
    }


def write_text_sample(directory, sample):
    """Write box_NNNN.txt (input) and box_NNNN.out (expected answer)."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    stem = f"box_{sample['id']:04d}"
    (directory / f"{stem}.txt").write_text(format_box_text(sample['_input']))
    (directory / f"{stem}.out").write_text(format_solution(sample['_result']))


def public_sample(sample):
    return {k: v for k, v in sample.items() if not k.startswith('_')}


def main(argv=None):
    parser = argparse.ArgumentParser(description='Generate random crystal boxes with optimal answers')
    parser.add_argument('--count', type=int, default=100, help='Number of boxes to generate')
    parser.add_argument('--rows', type=int, default=6, help='Rows per box')
    parser.add_argument('--cols', type=int, default=5, help=f'Columns per box (max {MAX_COLUMNS})')
    parser.add_argument('--density', type=float, default=0.7, help='Probability that a cell holds a crystal')
    parser.add_argument('--max-value', type=int, default=9, help='Maximum crystal brightness')
    parser.add_argument('--connection-rate', type=float, default=0.3, help='Probability of each connection')
    parser.add_argument('--seed', type=int, default=None, help='Random seed')
    parser.add_argument('--output', type=str, default='boxes.json', help='Output file (json) or directory (text)')
    parser.add_argument('--format', choices=('json', 'text'), default='json', help='Output format')
    parser.add_argument('--verify', action='store_true', help='Cross-check every box with CP-SAT')
    parser.add_argument('--append', action='store_true', help='Append to existing JSON file')
    args = parser.parse_args(argv)

    rng = random.Random(args.seed)

    # Load existing data if appending
    samples = []
    start_id = 0
    if args.format == 'json' and args.append and Path(args.output).exists():
        with open(args.output) as f:
            samples = json.load(f)
            start_id = max((s['id'] for s in samples), default=-1) + 1
        print(f"Loaded {len(samples)} existing samples, starting from ID {start_id}")

    print(f"Generating {args.count} boxes of {args.rows}x{args.cols}...")
    print()

    success = 0
    failed = 0
    disagreements = 0
    total_time = 0

    for i in range(args.count):
        sample_id = start_id + i
        print(f"[{i+1}/{args.count}] Generating box {sample_id}...", end=' ', flush=True)

        sample = generate_sample(sample_id, args.rows, args.cols, args.density, args.max_value,
                                 args.connection_rate, verify=args.verify, rng=rng)
        if not sample:
            failed += 1
            print("FAILED (box rejected)")
            continue

        success += 1
        total_time += sample['meta']['solve_time']
        note = ''
        if args.verify:
            if sample['meta']['cp_sat_agrees']:
                note = ', cp-sat OK'
            else:
                disagreements += 1
                note = ', CP-SAT MISMATCH'
        print(f"OK (total={sample['output']['total']}, time={sample['meta']['solve_time']}s{note})")

        if args.format == 'text':
            write_text_sample(args.output, sample)
        else:
            samples.append(public_sample(sample))

    if args.format == 'json':
        with open(args.output, 'w') as f:
            json.dump(samples, f, indent=2)

    print()
    print(f"Done! Generated {success} boxes, {failed} failed")
    if args.verify:
        print(f"CP-SAT disagreements: {disagreements}")
    print(f"Total solve time: {total_time:.1f}s, avg: {total_time/max(success,1):.3f}s")
    print(f"Saved to {args.output}")
    return 1 if disagreements else 0


if __name__ == '__main__':
    raise SystemExit(main())
