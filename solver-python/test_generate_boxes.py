import json
import random

from crystal_solver import connection_warnings, diagnose_box, format_solution, parse_box_text, solve_box
from generate_boxes import generate_sample, main, public_sample, random_box


def test_random_box_is_reproducible():
    first = random_box(4, 3, rng=random.Random(9))
    second = random_box(4, 3, rng=random.Random(9))
    assert first.crystals == second.crystals


def test_random_box_is_valid_and_mirrored():
    solver_input = random_box(5, 4, density=0.9, connection_rate=0.8, rng=random.Random(2))
    assert diagnose_box(solver_input) == []
    assert connection_warnings(solver_input) == []
    assert solver_input.declared_count == len(solver_input.crystals)


def test_random_box_respects_density_extremes():
    assert random_box(3, 3, density=0.0, rng=random.Random(1)).crystals == []
    full = random_box(3, 3, density=1.0, max_value=0, connection_rate=0.0, rng=random.Random(1))
    assert len(full.crystals) == 9
    assert all(c['value'] == 0 for c in full.crystals)
    assert not any(c[f] for c in full.crystals for f in ('right', 'up', 'left', 'down'))


def test_generate_sample_shape():
    sample = generate_sample(7, 3, 3, rng=random.Random(4))
    public = public_sample(sample)
    assert set(public) == {'id', 'input', 'output', 'meta'}
    assert public['id'] == 7
    assert public['input']['rows'] == 3
    assert public['output']['count'] == len(public['output']['cells'])


def test_generate_sample_with_verify():
    sample = generate_sample(0, 3, 4, verify=True, rng=random.Random(8))
    assert sample['meta']['cp_sat_agrees'] is True


def test_main_writes_json(tmp_path, capsys):
    output = tmp_path / 'boxes.json'
    assert main(['--count', '3', '--rows', '3', '--cols', '3', '--seed', '1', '--output', str(output)]) == 0
    samples = json.loads(output.read_text())
    assert [s['id'] for s in samples] == [0, 1, 2]
    assert "Done! Generated 3 boxes" in capsys.readouterr().out

    assert main(['--count', '2', '--rows', '2', '--cols', '2', '--seed', '2',
                 '--output', str(output), '--append']) == 0
    samples = json.loads(output.read_text())
    assert [s['id'] for s in samples] == [0, 1, 2, 3, 4]


def test_main_writes_text_fixtures(tmp_path):
    directory = tmp_path / 'fixtures'
    assert main(['--count', '2', '--rows', '3', '--cols', '2', '--seed', '3',
                 '--format', 'text', '--output', str(directory)]) == 0

    inputs = sorted(directory.glob('*.txt'))
    assert [p.name for p in inputs] == ['box_0000.txt', 'box_0001.txt']
    for path in inputs:
        result = solve_box(parse_box_text(path.read_text()))
        assert format_solution(result) == path.with_suffix('.out').read_text()
