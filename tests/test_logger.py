import pytest

from shoplist.utils import logger


@pytest.fixture(autouse=True)
def restore_level():
    before = logger._threshold
    yield
    logger._threshold = before


def test_set_level_filters_lower_levels(capsys):
    logger.set_level("warn")
    logger.info("[test] hidden")
    logger.warn("[test] shown")
    logger.error("[test] failed")
    out, err = capsys.readouterr()
    assert "hidden" not in out
    assert "[WARN] [test] shown" in out
    assert "[ERROR] [test] failed" in err


def test_unknown_level_falls_back_to_info(capsys):
    assert logger.set_level("chatty") == logger.LEVELS["INFO"]
    logger.debug("[test] nope")
    logger.info("[test] yes")
    out, _ = capsys.readouterr()
    assert "nope" not in out and "yes" in out


def test_none_silences_everything(capsys):
    logger.set_level("NONE")
    logger.error("[test] quiet")
    assert capsys.readouterr() == ("", "")
