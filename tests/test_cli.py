"""
Tests for the command line interface
"""

import json
from pathlib import Path
from unittest.mock import patch

from click.testing import CliRunner

from k8slogs.main import cli


SAMPLE_LOG = "\n".join([
    '2024-12-26T10:23:45.123456789Z {"level":"error","msg":"db connection failed"}',
    '2024-12-26T10:23:46.000000000Z [INFO] request served',
    '',
    'plain line without level',
])


class TestParseCommand:
    """Test local classification"""

    def test_parse_json_output(self):
        runner = CliRunner()
        result = runner.invoke(cli, ['parse', '--json', '--pod', 'p1'], input=SAMPLE_LOG)

        assert result.exit_code == 0
        entries = json.loads(result.stdout)
        assert [e['level'] for e in entries] == ['ERROR', 'INFO', None]
        assert entries[0]['is_json'] is True
        assert entries[0]['message'] == 'db connection failed'
        assert entries[0]['pod_name'] == 'p1'

    def test_parse_with_level_filter(self):
        runner = CliRunner()
        result = runner.invoke(cli, ['parse', '--json', '--level', 'error'], input=SAMPLE_LOG)

        assert result.exit_code == 0
        assert len(json.loads(result.stdout)) == 1

    def test_parse_keeps_whitespace_only_lines(self):
        """Test that only empty lines are skipped"""
        runner = CliRunner()
        result = runner.invoke(cli, ['parse', '--json'], input="INFO: a\n   \n\nb\n")

        assert result.exit_code == 0
        entries = json.loads(result.stdout)
        assert [e['raw'] for e in entries] == ['INFO: a', '   ', 'b']

    def test_parse_table_output(self):
        runner = CliRunner()
        result = runner.invoke(cli, ['parse'], input=SAMPLE_LOG)

        assert result.exit_code == 0
        assert "request served" in result.stdout
        assert "Message" in result.stdout


class TestSearchCommand:
    """Test cluster search with a fake log source"""

    def test_search_json(self, web_source):
        runner = CliRunner()
        with patch('k8slogs.main.build_log_source', return_value=web_source):
            result = runner.invoke(cli, ['search', 'web', '-n', 'prod', '--level', 'ERROR', '--json'])

        assert result.exit_code == 0
        results = json.loads(result.stdout)
        assert [(r['pod_name'], r['container_name']) for r in results] == [('web-1', 'app'), ('web-2', 'app')]
        assert all(r['total_matches'] == len(r['entries']) for r in results)

    def test_search_no_matches(self, web_source):
        runner = CliRunner()
        with patch('k8slogs.main.build_log_source', return_value=web_source):
            result = runner.invoke(cli, ['search', 'web', '-k', 'nothing-like-this'])

        assert result.exit_code == 0
        assert "No matching log entries found" in result.stdout

    def test_search_since_is_passed(self, web_source):
        runner = CliRunner()
        with patch('k8slogs.main.build_log_source', return_value=web_source):
            result = runner.invoke(cli, ['search', '-l', 'app=web', '--since', '15m', '--tail', '50'])

        assert result.exit_code == 0
        assert web_source.selectors == ['app=web']
        assert all(options.since_seconds == 900 and options.tail_lines == 50
                   for _, _, options in web_source.fetches)

    def test_search_missing_deployment(self, web_source):
        runner = CliRunner()
        with patch('k8slogs.main.build_log_source', return_value=web_source):
            result = runner.invoke(cli, ['search', 'api', '-n', 'prod'])

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_search_needs_target(self):
        runner = CliRunner()
        result = runner.invoke(cli, ['search'])
        assert result.exit_code == 2

    def test_invalid_since(self):
        runner = CliRunner()
        result = runner.invoke(cli, ['search', 'web', '--since', 'soon'])
        assert result.exit_code == 2


class TestLogsCommand:
    """Test single pod log retrieval"""

    def test_logs_json(self, web_source):
        runner = CliRunner()
        with patch('k8slogs.main.build_log_source', return_value=web_source):
            result = runner.invoke(cli, ['logs', 'web-1', '-n', 'prod', '-c', 'sidecar', '--json'])

        assert result.exit_code == 0
        entries = json.loads(result.stdout)
        assert entries[0]['level'] == 'WARN'
        assert entries[0]['container_name'] == 'sidecar'


class TestInitConfig:
    """Test example configuration generation"""

    def test_init_config(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ['init-config', '-o', 'conf/example.yaml'])

            assert result.exit_code == 0
            assert Path('conf/example.yaml').exists()
