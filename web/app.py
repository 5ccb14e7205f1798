"""Simple Flask JSON API over the package catalog."""

import os
from dataclasses import replace

from flask import Flask, current_app, jsonify, request

from asset_deps.catalog.base import Catalog, CatalogError
from asset_deps.catalog.sqlite_catalog import SqliteCatalog
from asset_deps.config import AnalysisOptions, ConfigError, load_options
from asset_deps.domain.enums import RenderProfile
from asset_deps.output.report_writer import build_report
from asset_deps.service import create_analyzer, load_target


def create_app(catalog: Catalog | None = None, cache_dir: str | None = None,
               options: AnalysisOptions | None = None) -> Flask:
    """Build the app; without arguments the settings come from the environment.

    Environment:
        ASSET_DEPS_CATALOG: Catalog database path.
        ASSET_DEPS_CACHE: Folder for extracted packages.
        ASSET_DEPS_CONFIG: Optional YAML options file.
    """
    app = Flask(__name__)

    if catalog is None:
        catalog = SqliteCatalog(os.environ['ASSET_DEPS_CATALOG'])
    if options is None:
        options = load_options(os.environ.get('ASSET_DEPS_CONFIG'))
    cache_dir = cache_dir or os.environ.get('ASSET_DEPS_CACHE', 'cache')

    app.config['CATALOG'] = catalog
    app.config['CACHE_DIR'] = cache_dir
    app.config['OPTIONS'] = options
    app.config['ANALYZER'] = create_analyzer(catalog, cache_dir, options)

    @app.route('/api/packages')
    def list_packages():
        """List all packages."""
        return jsonify([
            {
                'id': a.id,
                'name': a.safe_name,
                'display_name': a.display_name,
                'parent_id': a.parent_id,
                'version': a.version,
            }
            for a in current_app.config['CATALOG'].list_assets()
            if not a.exclude
        ])

    @app.route('/api/packages/<int:asset_id>/files')
    def list_package_files(asset_id: int):
        """List all files of a package."""
        cat = current_app.config['CATALOG']
        if cat.get_asset(asset_id) is None:
            return jsonify({'error': 'Package not found'}), 404

        return jsonify([
            {'path': af.path, 'guid': af.guid, 'type': af.type, 'size': af.size}
            for af in cat.files_of(asset_id)
        ])

    @app.route('/api/packages/<int:asset_id>/dependencies')
    def get_dependencies(asset_id: int):
        """Analyze one file, selected by ``guid`` or ``path``."""
        guid = request.args.get('guid')
        path = request.args.get('path')
        if not guid and not path:
            return jsonify({'error': 'No guid or path provided'}), 400

        try:
            info = load_target(current_app.config['CATALOG'], asset_id, guid=guid, path=path)
        except CatalogError as e:
            return jsonify({'error': str(e)}), 404

        analyzer = current_app.config['ANALYZER']
        profile = request.args.get('profile')
        if profile is not None:
            try:
                opts = replace(current_app.config['OPTIONS'], profile=RenderProfile.parse(profile))
            except ValueError as e:
                return jsonify({'error': str(e)}), 400
            analyzer = create_analyzer(
                current_app.config['CATALOG'], current_app.config['CACHE_DIR'], opts, analyzer.materializer,
            )

        analyzer.analyze_sync(info)
        return jsonify(build_report(info))

    return app


if __name__ == '__main__':
    try:
        create_app().run(debug=True, port=5002)
    except (KeyError, CatalogError, ConfigError) as e:
        raise SystemExit(f"Error: {e}")
