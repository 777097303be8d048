import random

import pytest

from config import GRADES
from grading import GradingResult, RandomGrader, get_grader


def test_random_grader_stays_in_band():
    grader = RandomGrader(rng=random.Random(7))
    for _ in range(50):
        result = grader.grade(b"")
        assert result.grade in GRADES
        assert 80 <= result.confidence <= 99


def test_random_grader_is_reproducible_with_seed():
    first, second = RandomGrader(rng=random.Random(3)), RandomGrader(rng=random.Random(3))
    assert [first.grade(b"") for _ in range(5)] == [second.grade(b"") for _ in range(5)]


@pytest.mark.parametrize("grade, confidence", [("F9", 90.0), ("F1", 101.0), ("F1", -1.0)])
def test_grading_result_rejects_invalid_values(grade, confidence):
    with pytest.raises(ValueError):
        GradingResult(grade=grade, confidence=confidence)


def test_configured_grader_is_mock():
    assert isinstance(get_grader(), RandomGrader)
    assert get_grader() is get_grader()


def test_model_grader_with_checkpoint(tmp_path):
    torch = pytest.importorskip("torch")
    torchvision = pytest.importorskip("torchvision")
    from conftest import make_png
    from grading import ModelGrader

    model = torchvision.models.resnet18(weights=None)
    model.fc = torch.nn.Linear(model.fc.in_features, len(GRADES))
    checkpoint = tmp_path / "fibrosis.pth"
    torch.save(model.state_dict(), checkpoint)

    result = ModelGrader(str(checkpoint)).grade(make_png())
    assert result.grade in GRADES
    assert 0 <= result.confidence <= 100


def test_model_grader_missing_checkpoint(tmp_path):
    pytest.importorskip("torch")
    pytest.importorskip("torchvision")
    from grading import ModelGrader

    with pytest.raises(FileNotFoundError):
        ModelGrader(str(tmp_path / "missing.pth"))
