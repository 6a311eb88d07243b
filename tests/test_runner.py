import subprocess

from ubuntu_post_install.runner import RunnerState, Step, StepRunner, StepStatus


def _raise() -> None:
    raise subprocess.CalledProcessError(100, ["apt", "install", "-y", "missing"])


def test_failure_is_isolated_and_run_continues() -> None:
    calls = []
    steps = [
        Step("step1", lambda: calls.append("step1")),
        Step("step2", _raise),
        Step("step3", lambda: calls.append("step3")),
    ]

    report = StepRunner().run(steps)

    assert report.as_pairs() == [
        ("step1", StepStatus.SUCCESS),
        ("step2", StepStatus.FAILURE),
        ("step3", StepStatus.SUCCESS),
    ]
    assert calls == ["step1", "step3"]
    assert not report.aborted


def test_report_has_one_entry_per_step_in_order() -> None:
    names = [f"step{i}" for i in range(7)]
    steps = [Step(name, _raise if i % 2 else (lambda: None)) for i, name in enumerate(names)]

    report = StepRunner().run(steps)

    assert [r.name for r in report] == names
    assert len(report) == len(steps)
    assert [r.name for r in report.failed] == ["step1", "step3", "step5"]


def test_false_return_counts_as_failure() -> None:
    report = StepRunner().run([Step("phase", lambda: False), Step("other", lambda: True)])

    assert report[0].status is StepStatus.FAILURE
    assert report[0].message == "Step reported failure"
    assert report[1].status is StepStatus.SUCCESS


def test_failure_message_is_recorded() -> None:
    def boom() -> None:
        raise OSError("disk full")

    report = StepRunner().run([Step("boom", boom)])

    assert report[0].message == "disk full"
    assert report[0].elapsed >= 0


def test_stop_on_failure_skips_remaining_steps() -> None:
    calls = []
    steps = [
        Step("step1", lambda: calls.append("step1")),
        Step("step2", _raise),
        Step("step3", lambda: calls.append("step3")),
        Step("step4", lambda: calls.append("step4")),
    ]
    step_runner = StepRunner(stop_on_failure=True)

    report = step_runner.run(steps)

    assert report.as_pairs() == [
        ("step1", StepStatus.SUCCESS),
        ("step2", StepStatus.FAILURE),
        ("step3", StepStatus.SKIPPED),
        ("step4", StepStatus.SKIPPED),
    ]
    assert calls == ["step1"]
    assert report.aborted
    assert step_runner.state is RunnerState.DONE


def test_empty_run() -> None:
    step_runner = StepRunner()

    report = step_runner.run([])

    assert len(report) == 0
    assert step_runner.state is RunnerState.DONE


def test_step_title() -> None:
    assert Step("configure_ufw", lambda: None).title == "Configure ufw"
    assert Step("configure_ufw", lambda: None, "Enable the firewall").title == "Enable the firewall"
