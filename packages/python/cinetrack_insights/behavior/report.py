from .schemas import BehaviorProfile


def format_report(profile: BehaviorProfile) -> str:
    """Plain-text summary of a profile for operators."""
    lines = [
        f"Behavior profile for {profile.user_id}",
        "-" * 50,
        f"Watching velocity: {profile.watching_velocity:.2f} titles/week",
        f"Exploration score: {profile.exploration_score * 100:.0f}% (genre diversity)",
        f"Consistency score: {profile.consistency_score * 100:.0f}% (rating consistency)",
        "",
        "Binge behavior:",
        f"  Is binger: {'yes' if profile.binge_patterns.is_binger else 'no'}",
        f"  Binge frequency: {profile.binge_patterns.binge_frequency * 100:.1f}%",
        "",
        "Rating distribution:",
    ]
    for rating, count in sorted(profile.rating_distribution.items()):
        lines.append(f"  {'*' * rating:<5} {'#' * count} ({count})")
    return "\n".join(lines)
