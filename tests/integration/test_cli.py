import os
import yaml
from click.testing import CliRunner
from m2c.CLI.main import cli


def _project(tmp_path):
    bundle = tmp_path / "db-resources"
    (bundle / "shop" / "files" / "etc").mkdir(parents=True)
    (bundle / "shop" / "files" / "etc" / "app.conf").write_text("db=postgres")
    (bundle / "shop" / "env").mkdir()
    (bundle / "shop" / "env" / "db.env").write_text("DB_HOST=postgres.docker\n")
    manifest = {
        'root': 'shop',
        'modules': {
            'shop': {'image': 'example/shop:1.0', 'depends_on': ['db', 'config']},
            'db': {'image': 'postgres:13', 'resources': 'db-resources'},
            'config': {},
        },
    }
    with open(tmp_path / "m2c.yml", 'w') as f:
        yaml.dump(manifest, f)


def test_cli_help():
    runner = CliRunner()
    result = runner.invoke(cli, ['--help'])
    assert result.exit_code == 0
    assert 'Start the environment' in result.output


def test_cli_start_no_file():
    runner = CliRunner()
    result = runner.invoke(cli, ['-f', 'non_existent.yml', 'start'])
    assert result.exit_code == 0
    assert 'Error: non_existent.yml not found.' in result.output


def test_cli_config(tmp_path):
    _project(tmp_path)
    runner = CliRunner()
    result = runner.invoke(cli, [
        '-f', str(tmp_path / "m2c.yml"),
        '--resources-root', str(tmp_path / "work"),
        'config',
    ])
    assert result.exit_code == 0, result.output
    data = yaml.safe_load(result.output)
    assert list(data['services']) == ['db', 'shop']
    shop = data['services']['shop']
    assert shop['volumes'] == [
        f"{tmp_path / 'work' / 'shop' / 'db' / 'shop' / 'files' / 'etc' / 'app.conf'}:/etc/app.conf"
    ]
    assert shop['env_file'] == [str(tmp_path / 'work' / 'shop' / 'db' / 'shop' / 'env' / 'db.env')]
    assert os.path.exists(tmp_path / 'work' / 'shop' / 'docker-compose.yml')


def test_cli_config_is_reproducible(tmp_path):
    _project(tmp_path)
    runner = CliRunner()
    args = ['-f', str(tmp_path / "m2c.yml"), '--resources-root', str(tmp_path / "work"), 'config']
    first = runner.invoke(cli, args)
    second = runner.invoke(cli, args)
    assert first.exit_code == 0
    assert first.output == second.output


def test_cli_env(tmp_path):
    _project(tmp_path)
    runner = CliRunner()
    result = runner.invoke(cli, [
        '-f', str(tmp_path / "m2c.yml"),
        '--resources-root', str(tmp_path / "work"),
        'env', 'shop',
    ])
    assert result.exit_code == 0, result.output
    assert result.output.strip() == "DB_HOST=postgres.docker"


def test_cli_unknown_root(tmp_path):
    _project(tmp_path)
    runner = CliRunner()
    result = runner.invoke(cli, [
        '-f', str(tmp_path / "m2c.yml"),
        '--module', 'missing',
        '--resources-root', str(tmp_path / "work"),
        'config',
    ])
    assert result.exit_code != 0
    assert 'missing' in result.output
