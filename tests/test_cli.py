# tests/test_cli.py
import json

import pytest

import soilrisk_cli
from soilrisk.services.db_engine import create_db_engine
from soilrisk.services.repository import EvaluationRepository


@pytest.fixture
def cli_env(tmp_path, monkeypatch, mocker, config_dir, clean_catalog_cache, restore_root_logging):
    """Runs the CLI inside tmp_path (logs/) without touching process signal handlers."""
    monkeypatch.chdir(tmp_path)
    mocker.patch('soilrisk_cli.signal.signal')
    return tmp_path


@pytest.fixture
def seeded_cli_db(cli_env, capsys):
    assert soilrisk_cli.main(['--init-db']) == 0
    capsys.readouterr()
    engine = create_db_engine('sqlite', {'database': str(cli_env / 'cli.db')})
    repo = EvaluationRepository(engine)
    repo.insert_project('P1', 'Pipeline North')
    repo.insert_zone('ZN1', 'P1', 'Crossing A')
    repo.insert_datapoint('DP1', 'ZN1', json.dumps({'Z1': 5, 'Z2': 15, 'Z4': 6.5, 'Z10': 'constant'}))
    repo.insert_datapoint(
        'DP2', 'ZN1', json.dumps({'RESISTIVITY': 80, 'CHLORIDES': 50, 'SOIL_TYPE': 'drained', 'PH': 7.0})
    )
    repo.insert_datapoint('DP3', 'ZN1', json.dumps({'Z2': 15, 'Z99': 1}))
    engine.dispose()
    return repo


def _evaluate(capsys, *extra):
    code = soilrisk_cli.main(['--evaluate', 'ZN1', '--standard', 'din50929-3', '--datapoints', 'DP1', *extra])
    return code, capsys.readouterr()


def _json_from(out):
    return json.loads(out)


def test_no_action_prints_help(capsys):
    assert soilrisk_cli.main([]) == 0
    assert 'usage' in capsys.readouterr().out


def test_list_standards(cli_env, capsys):
    assert soilrisk_cli.main(['--list-standards']) == 0
    out = capsys.readouterr().out
    assert 'din50929-3' in out
    assert 'as-nzs-2041.1' in out


def test_evaluate_show_and_history(seeded_cli_db, capsys):
    code, captured = _evaluate(capsys, '--recommendations', 'Use PE coating')
    assert code == 0
    assert 'version 1: total -1, class Ib (low)' in captured.out
    output_id = captured.out.split()[1]

    assert _evaluate(capsys)[0] == 0

    assert soilrisk_cli.main(['--show', output_id, '--version-number', '1']) == 0
    report = _json_from(capsys.readouterr().out)
    assert report['header']['version_number'] == 1
    assert report['recommendations'] == 'Use PE coating'
    assert report['footer']['analyst_name'] == 'Jane Doe'

    assert soilrisk_cli.main(['--history', output_id]) == 0
    history = capsys.readouterr().out
    assert 'version_number' in history
    assert 'analyst-01' in history


def test_preview_stores_nothing(seeded_cli_db, capsys):
    code, captured = _evaluate(capsys, '--preview')
    assert code == 0
    assert _json_from(captured.out)['is_preview'] is True
    assert seeded_cli_db.find_output('P1', 'ZN1', 'din50929-3') is None


def test_loss_rate_settings_come_from_config(seeded_cli_db, capsys):
    code = soilrisk_cli.main(['--evaluate', 'ZN1', '--standard', 'as-nzs-2041.1', '--datapoints', 'DP2', '--preview'])
    assert code == 0
    metric = _json_from(capsys.readouterr().out)['metrics'][0]
    # default_coating_thickness = 100 in the test config: floor(100 / 15) years
    assert metric['details']['service_life_years'] == 6


def test_errors_are_one_line(seeded_cli_db, capsys):
    assert soilrisk_cli.main(['--show', 'missing']) == 1
    assert "Error: Analysis output 'missing' not found" in capsys.readouterr().err

    assert soilrisk_cli.main(['--evaluate', 'ZN1', '--datapoints', 'DP1']) == 1
    assert '--standard' in capsys.readouterr().err

    assert soilrisk_cli.main(['--evaluate', 'ZN1', '--standard', 'din50929-3', '--datapoints', 'DP404']) == 1
    assert 'DP404' in capsys.readouterr().err


def test_check_config(cli_env):
    assert soilrisk_cli.main(['--check-config']) == 0


def test_preview_with_unrated_value_prints_only_json(seeded_cli_db, capsys):
    """Warnings about unrated values go to stderr, stdout stays a JSON document."""
    code = soilrisk_cli.main(['--evaluate', 'ZN1', '--standard', 'din50929-3', '--datapoints', 'DP3', '--preview'])
    assert code == 0
    captured = capsys.readouterr()

    document = json.loads(captured.out)
    assert document['unrated'] == [
        {'datapoint_id': 'DP3', 'code': 'Z99', 'raw_value': 1, 'reason': 'unknown_parameter'}
    ]
    assert 'could not be rated' in captured.err


def test_database_errors_are_one_line(cli_env, capsys):
    """Without --init-db the tables are missing: one Error line, no traceback."""
    assert soilrisk_cli.main(['--show', 'abc']) == 1
    captured = capsys.readouterr()

    error_lines = [line for line in captured.err.splitlines() if line.startswith('Error:')]
    assert len(error_lines) == 1
    assert 'analysis_versions' in error_lines[0]
    assert 'Traceback' not in captured.err
    assert captured.out == ''


def test_list_outputs(seeded_cli_db, capsys):
    assert soilrisk_cli.main(['--list-outputs']) == 0
    assert 'No analysis outputs found' in capsys.readouterr().out

    code, captured = _evaluate(capsys)
    assert code == 0
    output_id = captured.out.split()[1]
    assert _evaluate(capsys)[0] == 0

    assert soilrisk_cli.main(['--list-outputs']) == 0
    lines = capsys.readouterr().out.splitlines()
    assert 'latest_version' in lines[0]
    assert len(lines) == 2
    assert output_id in lines[1]
    assert 'din50929-3' in lines[1]

    assert soilrisk_cli.main(['--list-outputs', 'P404']) == 0
    assert 'No analysis outputs found' in capsys.readouterr().out
