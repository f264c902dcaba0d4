import pytest

from conftest import FakeEncoder
from webmoji.domain.exceptions import (
    ConfigurationException,
    PassOneFailedException,
    PassTwoFailedException,
    SearchExhaustedException,
)
from webmoji.domain.models import OutputKind, SearchPolicy
from webmoji.services.quality_search import QualitySearch, crf_schedule


def _oversized_below(threshold_crf):
    """Sizes that miss the ceiling by one byte below `threshold_crf` and hit it exactly from there on."""
    return lambda plan, crf: plan.max_bytes + 1 if crf < threshold_crf else plan.max_bytes


def test_default_schedule():
    schedule = list(crf_schedule(SearchPolicy(start_crf=18, crf_step=4, max_attempts=12)))

    assert schedule == list(range(18, 63, 4))


@pytest.mark.parametrize(
    "policy, expected",
    [
        (SearchPolicy(start_crf=18, crf_step=4, max_attempts=3), [18, 22, 26]),
        (SearchPolicy(start_crf=55, crf_step=4, max_attempts=10), [55, 59, 63]),
        (SearchPolicy(start_crf=63, crf_step=1, max_attempts=5), [63]),
        (SearchPolicy(start_crf=0, crf_step=40, max_attempts=5), [0, 40, 63]),
    ],
)
def test_schedule_is_increasing_and_capped(policy, expected):
    assert list(crf_schedule(policy)) == expected


def test_first_fitting_crf_is_accepted(make_plan):
    encoder = FakeEncoder(size_for=_oversized_below(30))
    encode_plan = make_plan(OutputKind.EMOJI)

    artifact = QualitySearch(encoder, SearchPolicy(start_crf=18, crf_step=4, max_attempts=12)).search(
        encode_plan
    )

    assert artifact.crf == 30
    assert artifact.byte_size == encode_plan.max_bytes
    assert artifact.kind is OutputKind.EMOJI
    assert [attempt.crf for attempt in artifact.attempts] == [18, 22, 26, 30]
    assert [crf for _, _, crf in encoder.calls] == [18, 22, 26, 30]
    assert artifact.path.stat().st_size == encode_plan.max_bytes


def test_fitting_start_crf_needs_one_attempt(make_plan):
    encoder = FakeEncoder(size_for=lambda plan, crf: 10)

    artifact = QualitySearch(encoder, SearchPolicy(start_crf=18)).search(make_plan(OutputKind.STICKER))

    assert artifact.crf == 18
    assert len(encoder.calls) == 1


def test_exhausted_search_reports_last_attempt(make_plan):
    encoder = FakeEncoder(size_for=lambda plan, crf: plan.max_bytes + 1)
    encode_plan = make_plan(OutputKind.EMOJI)

    with pytest.raises(SearchExhaustedException) as excinfo:
        QualitySearch(encoder, SearchPolicy(start_crf=18, crf_step=4, max_attempts=3)).search(encode_plan)

    error = excinfo.value
    assert error.stage == "search"
    assert (error.crf, error.attempts) == (26, 3)
    assert error.byte_size == encode_plan.max_bytes + 1
    assert error.max_bytes == encode_plan.max_bytes
    assert error.path is None
    assert not encode_plan.output_path.exists()


def test_exhausted_search_can_keep_oversized_output(make_plan):
    encoder = FakeEncoder(size_for=lambda plan, crf: plan.max_bytes + 1)
    encode_plan = make_plan(OutputKind.STICKER)
    policy = SearchPolicy(start_crf=60, crf_step=4, max_attempts=5, keep_oversized=True)

    with pytest.raises(SearchExhaustedException) as excinfo:
        QualitySearch(encoder, policy).search(encode_plan)

    assert excinfo.value.crf == 63
    assert excinfo.value.path == encode_plan.output_path
    assert encode_plan.output_path.stat().st_size == encode_plan.max_bytes + 1


def test_encoder_failure_stops_the_search(make_plan):
    encoder = FakeEncoder(error=PassTwoFailedException(1, "boom"))

    with pytest.raises(PassTwoFailedException) as excinfo:
        QualitySearch(encoder).search(make_plan(OutputKind.EMOJI))

    assert len(encoder.calls) == 1
    assert [attempt.crf for attempt in excinfo.value.attempts] == [18]


@pytest.mark.parametrize(
    "policy",
    [SearchPolicy(start_crf=64), SearchPolicy(start_crf=-1), SearchPolicy(crf_step=0), SearchPolicy(max_attempts=0)],
)
def test_invalid_policy_is_rejected(policy):
    with pytest.raises(ConfigurationException):
        QualitySearch(FakeEncoder(), policy)


def test_failed_attempt_is_recorded_on_the_error(make_plan):
    def size_for(plan, crf):
        if crf == 22:
            raise PassOneFailedException(1, "Invalid argument")
        return plan.max_bytes + 1

    encode_plan = make_plan(OutputKind.EMOJI)

    with pytest.raises(PassOneFailedException) as excinfo:
        QualitySearch(FakeEncoder(size_for=size_for), SearchPolicy(start_crf=18, crf_step=4)).search(encode_plan)

    oversized, failed = excinfo.value.attempts
    assert (oversized.crf, oversized.byte_size, oversized.failed) == (18, encode_plan.max_bytes + 1, False)
    assert (failed.crf, failed.byte_size) == (22, None)
    assert failed.failed
    assert "Invalid argument" in failed.error
    assert not failed.fits(encode_plan.max_bytes)


def test_exhausted_message_names_the_last_attempt():
    error = SearchExhaustedException(crf=63, byte_size=70_000, max_bytes=65_536, attempts=12)

    assert "the last attempt (CRF 63) was 70000 bytes" in str(error)
