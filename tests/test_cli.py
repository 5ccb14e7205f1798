"""Integration tests for the CLI and shared service wiring."""

import json

import pytest

from asset_deps.catalog.base import CatalogError
from asset_deps.catalog.sqlite_catalog import SqliteCatalog
from asset_deps.cli import EXIT_ERROR, EXIT_OK, main
from asset_deps.domain.constants import TEMP_FOLDER
from asset_deps.service import load_target


def _analyze_args(catalog, tmp_path, *extra):
    return ['analyze', '--catalog', catalog, '--asset-id', '1', '--cache', str(tmp_path / 'cache'), *extra]


class TestAnalyzeCommand:

    def test_analyze_by_guid(self, sample_catalog, tmp_path, capsys):
        output = tmp_path / 'report.json'

        code = main(_analyze_args(sample_catalog, tmp_path, '--guid', 'aa01', '--output', str(output)))

        assert code == EXIT_OK
        assert 'done: 2 dependencies' in capsys.readouterr().out
        with open(output, encoding='utf-8') as f:
            report = json.load(f)
        assert [d['path'] for d in report['dependencies']] == ['Materials/Bark.mat', 'Textures/bark.png']
        assert report['dependency_size'] == 207

    def test_analyze_by_path(self, sample_catalog, tmp_path, capsys):
        code = main(_analyze_args(sample_catalog, tmp_path, '--path', 'Materials/Bark.mat'))

        assert code == EXIT_OK
        assert 'done: 1 dependencies' in capsys.readouterr().out

    def test_not_possible_exit_code(self, sample_catalog, tmp_path, capsys):
        code = main(_analyze_args(sample_catalog, tmp_path, '--guid', 'dd01'))

        assert code == EXIT_ERROR
        assert 'not_possible' in capsys.readouterr().out

    def test_unknown_file(self, sample_catalog, tmp_path, capsys):
        code = main(_analyze_args(sample_catalog, tmp_path, '--guid', 'ff99'))

        assert code == EXIT_ERROR
        assert 'not found' in capsys.readouterr().err

    def test_missing_catalog(self, tmp_path, capsys):
        code = main(_analyze_args(str(tmp_path / 'none.db'), tmp_path, '--guid', 'aa01'))

        assert code == EXIT_ERROR
        assert 'not found' in capsys.readouterr().err

    def test_bad_config(self, sample_catalog, tmp_path, capsys):
        config = tmp_path / 'options.yaml'
        config.write_text('colour: red\n')

        code = main(_analyze_args(sample_catalog, tmp_path, '--guid', 'aa01', '--config', str(config)))

        assert code == EXIT_ERROR
        assert 'Unknown config keys' in capsys.readouterr().err

    def test_guid_and_path_are_exclusive(self, sample_catalog, tmp_path):
        with pytest.raises(SystemExit):
            main(_analyze_args(sample_catalog, tmp_path, '--guid', 'aa01', '--path', 'x'))


class TestOtherCommands:

    def test_types(self, capsys):
        assert main(['types']) == EXIT_OK
        out = capsys.readouterr().out
        assert '  prefab' in out
        assert '  fbx' in out

    def test_cleanup(self, tmp_path, capsys):
        (tmp_path / f"{TEMP_FOLDER}_deadbeef").mkdir()

        assert main(['cleanup', '--temp-root', str(tmp_path)]) == EXIT_OK
        assert 'Removed 1' in capsys.readouterr().out

    def test_no_command(self, capsys):
        assert main([]) == EXIT_OK
        assert 'usage' in capsys.readouterr().out


class TestLoadTarget:

    def test_requires_guid_or_path(self, sample_catalog):
        with SqliteCatalog(sample_catalog) as cat:
            with pytest.raises(CatalogError):
                load_target(cat, 1)

    def test_unknown_package(self, sample_catalog):
        with SqliteCatalog(sample_catalog) as cat:
            with pytest.raises(CatalogError, match='Package 5'):
                load_target(cat, 5, guid='aa01')

    def test_found(self, sample_catalog):
        with SqliteCatalog(sample_catalog) as cat:
            info = load_target(cat, 1, path='Prefabs/Tree.prefab')
        assert info.guid == 'aa01'
        assert info.asset.safe_name == 'Forest'
