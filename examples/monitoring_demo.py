"""Demo: EWMA and CUSUM monitoring of a small process shift.

This example demonstrates how the EWMA and CUSUM engines pick up a small
sustained shift that a plain Shewhart check would miss, and how the
incremental monitors reproduce the batch charts point by point.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from spcengine import (
    CUSUMConfig,
    CUSUMMonitor,
    EWMAConfig,
    compute_cusum,
    compute_ewma,
    compute_process_capability,
    configure_logging,
    estimate_process_parameters,
    summarize_cusum,
    summarize_ewma,
)

BASELINE = [
    10.02, 9.98, 10.01, 9.97, 10.03, 9.99, 10.00, 10.02, 9.98, 10.01,
    9.99, 10.00, 10.03, 9.97, 10.01, 9.99, 10.02, 9.98, 10.00, 10.01,
]

# Same process after a small upward shift in the mean
SHIFTED = [v + 0.02 for v in BASELINE]


def demo_ewma(target: float, sigma: float):
    """Demonstrate EWMA detection with time-varying limits."""
    print("=" * 70)
    print("DEMO: EWMA chart")
    print("=" * 70)

    config = EWMAConfig(target=target, sigma=sigma, lambda_=0.2, L=3.0)
    points = compute_ewma(BASELINE + SHIFTED, config)

    for point in points:
        flag = "OUT" if point.is_out_of_control else "ok "
        rules = sorted(point.violated_rules) or ""
        print(
            f"  #{point.index:2d} value={point.value:6.3f} ewma={point.ewma:7.4f} "
            f"limits=[{point.lcl:7.4f}, {point.ucl:7.4f}] {flag} {rules}"
        )

    summary = summarize_ewma(points)
    print(f"\nOut of control: {summary.out_of_control_count}/{summary.count}")
    print(f"Empirical run length: {summary.average_run_length:.2f}")
    print()


def demo_cusum(target: float, sigma: float):
    """Demonstrate CUSUM detection, with and without fast initial response."""
    print("=" * 70)
    print("DEMO: CUSUM chart")
    print("=" * 70)

    for fir in (False, True):
        config = CUSUMConfig(target=target, sigma=sigma, k=0.5, h=4.0, fast_initial_response=fir)
        points = compute_cusum(SHIFTED, config)
        first = next((p.index for p in points if p.is_out_of_control), None)
        summary = summarize_cusum(points)
        print(f"\nFIR={fir}: first signal at point {first}")
        print(f"  max C+={summary.max_cusum_high:.4f}, change points={summary.change_point_count}")

    # The monitor reproduces the batch chart one reading at a time
    config = CUSUMConfig(target=target, sigma=sigma, k=0.5, h=4.0)
    monitor = CUSUMMonitor(config)
    streamed = [monitor.update(v) for v in SHIFTED]
    print(f"\nIncremental == batch: {streamed == compute_cusum(SHIFTED, config)}")
    print()


def demo_capability():
    """Demonstrate capability of the baseline against its tolerance."""
    print("=" * 70)
    print("DEMO: Process capability")
    print("=" * 70)

    cap = compute_process_capability(BASELINE, lsl=9.9, usl=10.1, target=10.0)
    print(f"  Cp={cap.cp:.3f} Cpk={cap.cpk:.3f} Cpm={cap.cpm:.3f}")
    print(f"  Pp={cap.pp:.3f} Ppk={cap.ppk:.3f}")
    print(f"  Level: {cap.level.value}, sigma level: {cap.sigma_level:.2f}")
    print()


if __name__ == "__main__":
    configure_logging(log_format="console", log_level="INFO")

    target, sigma = estimate_process_parameters(BASELINE, method="moving_range")
    print(f"Baseline estimate: target={target:.4f}, sigma={sigma:.4f}\n")

    demo_ewma(target, sigma)
    demo_cusum(target, sigma)
    demo_capability()
