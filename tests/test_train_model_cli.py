import pandas as pd

import train_model


def _csv(tmp_path, frame):
    path = tmp_path / "dataset.csv"
    frame.to_csv(path, index=False)
    return path


def test_cli_trains_regression(tmp_path, capsys):
    path = _csv(tmp_path, pd.DataFrame({"month": range(1, 13), "revenue": [3 * m + 1 for m in range(1, 13)]}))
    db_url = f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"

    code = train_model.main([
        str(path), "--type", "REGRESSION", "--features", "month", "--target", "revenue",
        "--database-url", db_url,
    ])

    out = capsys.readouterr().out
    assert code == 0
    assert "TRAINING SUCCESSFUL!" in out
    assert "r2_score: 1.0000" in out


def test_cli_time_series_window(tmp_path, capsys):
    path = _csv(tmp_path, pd.DataFrame({"units": [float(v) for v in range(20)]}))

    code = train_model.main([
        str(path), "--type", "TIME_SERIES", "--target", "units", "--window-size", "4",
        "--database-url", f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}",
    ])

    assert code == 0
    assert "mse: 6.2500" in capsys.readouterr().out


def test_cli_reports_missing_column(tmp_path, capsys):
    path = _csv(tmp_path, pd.DataFrame({"month": range(12)}))

    code = train_model.main([
        str(path), "--type", "REGRESSION", "--features", "month", "--target", "revenue",
        "--database-url", f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}",
    ])

    out = capsys.readouterr().out
    assert code == 1
    assert "TRAINING FAILED" in out
    assert "revenue" in out


def test_cli_reports_missing_file(tmp_path, capsys):
    code = train_model.main([str(tmp_path / "nope.csv"), "--type", "CLUSTERING", "--features", "x"])

    assert code == 1
    assert "TRAINING FAILED" in capsys.readouterr().out
