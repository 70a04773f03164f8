"""
Text and chart summaries of a session.
"""
from typing import Union
from pathlib import Path

from .session import SessionResult

# Critical chi-square value for 5 degrees of freedom at p = 0.01
CHI_SQUARE_CRITICAL_5DOF = 15.086


def face_chi_square(face_counts: dict[int, int]) -> float:
    """Pearson chi-square of die faces against a uniform die."""
    total = sum(face_counts.get(face, 0) for face in range(1, 7))
    if total == 0:
        return 0.0
    expected = total / 6
    return sum((face_counts.get(face, 0) - expected) ** 2 / expected for face in range(1, 7))


def looks_fair(face_counts: dict[int, int]) -> bool:
    return face_chi_square(face_counts) < CHI_SQUARE_CRITICAL_5DOF


def format_roll_distribution(distribution: dict[int, int]) -> str:
    """Text histogram of dice totals."""
    total_rolls = sum(distribution.values())
    max_count = max(distribution.values()) if distribution else 0
    lines = []
    for roll_total in range(2, 13):
        count = distribution.get(roll_total, 0)
        percent = (count / total_rolls * 100) if total_rolls > 0 else 0

        # Create bar (scale to 30 chars max)
        bar_length = int((count / max_count) * 30) if max_count > 0 else 0
        bar = '█' * bar_length

        lines.append(f"{roll_total:2d}: {bar:<30} {count:4d} ({percent:5.2f}%)")

    return '\n'.join(lines)


def format_summary(result: SessionResult) -> str:
    chi = face_chi_square(result.face_counts)
    lines = [
        f"Epochs: {result.epochs}   Points made: {result.points_made}   Seven outs: {result.seven_outs}",
        "",
        format_roll_distribution(result.roll_distribution),
        "",
        "Die faces: " + "  ".join(f"{f}={result.face_counts[f]}" for f in range(1, 7)),
        f"Chi-square (5 dof): {chi:.2f} ({'uniform' if chi < CHI_SQUARE_CRITICAL_5DOF else 'SUSPECT'})",
        "",
        f"Treasury: {result.treasury_series[0] if result.treasury_series else 0} -> "
        f"{result.treasury_series[-1] if result.treasury_series else 0} (house net {result.house_net:+d})",
        f"Claims held by circuit breaker: {result.rejected_claims}",
        "",
    ]
    for player in result.players:
        lines.append(
            f"{player.name:<26} wagered {player.wagered:>8d}  "
            f"net {player.net_change:>+8d}  ({player.roi_percent:+.2f}% of action)"
        )
    return '\n'.join(lines)


def plot_session(result: SessionResult, path: Union[str, Path]) -> Path:
    """Write a face histogram and the treasury balance curve to an image."""
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    fig, (faces_ax, treasury_ax) = plt.subplots(1, 2, figsize=(12, 4.5), facecolor='#1a0f2e')

    faces = list(range(1, 7))
    counts = [result.face_counts.get(f, 0) for f in faces]
    expected = sum(counts) / 6
    faces_ax.bar(faces, counts, color='#ffd700', alpha=0.9, label='Observed')
    faces_ax.axhline(y=expected, color='white', linestyle='--', linewidth=1, alpha=0.5, label='Uniform')
    faces_ax.set_xlabel('Die Face', color='white', fontsize=10)
    faces_ax.set_ylabel('Count', color='white', fontsize=10)
    faces_ax.set_title(f"Chi-square {face_chi_square(result.face_counts):.2f}", color='white')

    treasury_ax.plot(range(len(result.treasury_series)), result.treasury_series,
                     color='#00ff00', linewidth=2, alpha=0.9, label='Treasury')
    if result.treasury_series:
        treasury_ax.axhline(y=result.treasury_series[0], color='white', linestyle='--',
                            linewidth=1, alpha=0.5, label='Starting Balance')
    treasury_ax.set_xlabel('Epoch', color='white', fontsize=10)
    treasury_ax.set_ylabel('Balance', color='white', fontsize=10)

    for ax in (faces_ax, treasury_ax):
        ax.set_facecolor('#2d1b4e')
        ax.tick_params(colors='white')
        ax.grid(True, alpha=0.3, color='white', linestyle=':', linewidth=0.5)
        ax.legend(facecolor='#2d1b4e', labelcolor='white', framealpha=0.95, fontsize=9)
        for spine in ax.spines.values():
            spine.set_color('white')

    fig.tight_layout()
    path = Path(path)
    fig.savefig(path, facecolor=fig.get_facecolor())
    plt.close(fig)
    return path
