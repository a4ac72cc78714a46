"""Glicko-2 rating engine for timed problem solving.

Each solve is scored as a single game against the problem, whose rating is
treated as a nearly certain opponent (RD 50). Outcomes are graded between
0 and 1 by partial credit, so a late solve counts as something between a
draw and a win.

References:
    Glickman, M. E. (2012). "Example of the Glicko-2 system".
    http://www.glicko.net/glicko/glicko2.pdf
"""

import math
from datetime import datetime, timedelta

import structlog

from solve_rating.errors import RatingComputationError, VolatilityConvergenceError
from solve_rating.models.rating import (
    DEFAULT_RATING,
    DEFAULT_RD,
    DEFAULT_VOLATILITY,
    UserRating,
)

logger = structlog.get_logger()

GLICKO_SCALE = 173.7178
TAU = 0.5  # constrains volatility change
EPSILON = 0.000001  # convergence tolerance for the volatility solver
MAX_VOLATILITY_ITERATIONS = 100

ESTIMATED_RD = 200.0
HIGH_ESTIMATED_RD = 250.0
PROBLEM_RD = 50.0

BASE_TIME_MINUTES = 20
RATING_PERIOD = timedelta(days=365)
C_PARAMETER = 50.0  # RD growth per rating period of inactivity

MIN_RATING = 800.0
MAX_RATING = 3500.0
MIN_RD = 30.0
MAX_RD = DEFAULT_RD


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves upward (1522.5 -> 1523)."""
    return math.floor(value + 0.5)


# Scale conversions


def to_glicko_scale(rating: float) -> float:
    """Convert rating from normal scale to Glicko-2 scale."""
    return (rating - DEFAULT_RATING) / GLICKO_SCALE


def from_glicko_scale(glicko_rating: float) -> float:
    """Convert rating from Glicko-2 scale to normal scale."""
    return glicko_rating * GLICKO_SCALE + DEFAULT_RATING


def rd_to_glicko_scale(rd: float) -> float:
    return rd / GLICKO_SCALE


def rd_from_glicko_scale(glicko_rd: float) -> float:
    return glicko_rd * GLICKO_SCALE


def g(phi: float) -> float:
    """g(φ) = 1 / sqrt(1 + 3φ²/π²)"""
    return 1 / math.sqrt(1 + (3 * phi * phi) / (math.pi * math.pi))


def E(mu: float, mu_j: float, phi_j: float) -> float:
    """E(μ, μⱼ, φⱼ) = 1 / (1 + exp(-g(φⱼ)(μ - μⱼ)))"""
    return 1 / (1 + math.exp(-g(phi_j) * (mu - mu_j)))


# Display helpers


def get_lower_bound_rating(rating: float, rd: float) -> int:
    """Rating minus 2 RD: the 95% lower bound on the user's true skill, floored at 0."""
    return max(0, round_half_up(rating - 2 * rd))


def get_rating_display_text(rating: float, rd: float) -> str:
    """Format a rating with its uncertainty, e.g. "Mean: 1523 ± 87"."""
    return f"Mean: {round_half_up(rating)} ± {round_half_up(rd)}"


def format_time_limit(seconds: float) -> str:
    """Format a time limit in seconds as "20m" or "20m 30s"."""
    minutes, secs = divmod(int(seconds), 60)
    if secs == 0:
        return f"{minutes}m"
    return f"{minutes}m {secs}s"


# Rating lifecycle


def initialize_rating(now: datetime | None = None) -> UserRating:
    """Default rating for a user with no history."""
    return UserRating(
        rating=DEFAULT_RATING,
        rd=DEFAULT_RD,
        volatility=DEFAULT_VOLATILITY,
        last_updated=now or datetime.now(),
        solve_count=0,
    )


def create_placeholder_rating(
    estimated_rating: float,
    solve_count: int,
    now: datetime | None = None,
) -> UserRating:
    """Build a non-replayed rating around an estimate.

    Legacy helper kept for callers that only have an estimated mean; the
    history estimator replays solves instead.

    Args:
        estimated_rating: Estimated mean rating.
        solve_count: Number of solves behind the estimate.

    Returns:
        Rating with RD 250 below 10 solves, otherwise 200.
    """
    rd = HIGH_ESTIMATED_RD if solve_count < 10 else ESTIMATED_RD
    return UserRating(
        rating=round_half_up(estimated_rating),
        rd=rd,
        volatility=DEFAULT_VOLATILITY,
        last_updated=now or datetime.now(),
        solve_count=solve_count,
    )


def apply_time_decay(user_rating: UserRating, now: datetime) -> UserRating:
    """Grow RD for the time elapsed since the last update.

    φ' = sqrt(φ² + c²·t), where t is elapsed rating periods (365 days each).
    RD is capped at 350. A rating that was never updated is returned as-is.

    Args:
        user_rating: Current rating.
        now: Current time.

    Returns:
        Rating with decayed RD and ``last_updated`` set to ``now``.
    """
    if user_rating.last_updated is None:
        return user_rating

    elapsed = max(0.0, (now - user_rating.last_updated) / RATING_PERIOD)
    new_rd = math.sqrt(user_rating.rd ** 2 + C_PARAMETER ** 2 * elapsed)

    return user_rating.model_copy(
        update={"rd": round_half_up(min(new_rd, MAX_RD)), "last_updated": now}
    )


def calculate_expected_score(user_rating: float, problem_rating: float) -> float:
    """Probability that a user at ``user_rating`` solves a problem at ``problem_rating``."""
    mu = to_glicko_scale(user_rating)
    mu_problem = to_glicko_scale(problem_rating)
    return E(mu, mu_problem, rd_to_glicko_scale(PROBLEM_RD))


def calculate_partial_credit(time_used: float, time_limit: float, completed: bool) -> float:
    """Grade a solve by how long it took relative to its time limit.

    Within the limit earns full credit. Between 1x and 2x the limit credit
    decays linearly from 1.0 to 0.3 (1.5x earns 0.65). Beyond 2x, or an
    unsolved attempt, earns nothing.

    Args:
        time_used: Seconds taken.
        time_limit: Seconds allowed.
        completed: Whether the problem was solved.

    Returns:
        Score between 0 and 1.0.
    """
    if not completed:
        return 0.0
    if time_limit <= 0:
        logger.debug("partial_credit_invalid_limit", time_limit=time_limit)
        return 0.0

    ratio = time_used / time_limit
    if ratio <= 1.0:
        return 1.0
    elif ratio <= 2.0:
        return 1.0 - (ratio - 1.0) * 0.7
    else:
        return 0.0


def determine_time_limit(
    problem_rating: float | None = None,
    base_minutes: int = BASE_TIME_MINUTES,
) -> int:
    """Time limit in seconds for a problem.

    Every problem gets the same limit; ``problem_rating`` is accepted so
    callers keep passing it.
    """
    return base_minutes * 60


def _solve_volatility(
    phi: float,
    sigma: float,
    v: float,
    delta: float,
    max_iterations: int,
) -> float:
    """Find the new volatility σ' with the Illinois algorithm (Glicko-2 step 5)."""
    a = math.log(sigma * sigma)
    delta_sq = delta * delta
    phi_sq = phi * phi

    def f(x: float) -> float:
        ex = math.exp(x)
        denom = phi_sq + v + ex
        return (ex * (delta_sq - phi_sq - v - ex)) / (2 * denom * denom) - (x - a) / (TAU * TAU)

    A = a
    if delta_sq > phi_sq + v:
        B = math.log(delta_sq - phi_sq - v)
    else:
        k = 1
        while f(a - k * TAU) < 0:
            k += 1
            if k > max_iterations:
                raise VolatilityConvergenceError(k, stage="bracket")
        B = a - k * TAU

    f_A = f(A)
    f_B = f(B)

    iterations = 0
    while abs(B - A) > EPSILON:
        iterations += 1
        if iterations > max_iterations:
            raise VolatilityConvergenceError(max_iterations)

        C = A + (A - B) * f_A / (f_B - f_A)
        f_C = f(C)

        if f_C * f_B < 0:
            A = B
            f_A = f_B
        else:
            f_A = f_A / 2

        B = C
        f_B = f_C

    return math.exp(A / 2)


def update_rating(
    user_rating: UserRating,
    problem_rating: float,
    actual_outcome: float,
    now: datetime | None = None,
    max_iterations: int = MAX_VOLATILITY_ITERATIONS,
) -> UserRating:
    """Apply one Glicko-2 update for a solve outcome.

    Args:
        user_rating: Current rating. Not modified.
        problem_rating: Difficulty rating of the problem (the opponent).
        actual_outcome: Score between 0 and 1, usually from partial credit.
        now: Update time; defaults to the current time.
        max_iterations: Cap for each volatility solver loop.

    Returns:
        New rating with rating and RD clamped and rounded, volatility
        unrounded, ``solve_count`` incremented.

    Raises:
        RatingComputationError: Inputs are non-finite or the performance
            variance is degenerate.
        VolatilityConvergenceError: The volatility solver hit its cap.
    """
    if not all(math.isfinite(x) for x in (problem_rating, actual_outcome)):
        raise RatingComputationError(
            f"Non-finite update input: problem_rating={problem_rating}, "
            f"actual_outcome={actual_outcome}"
        )

    now = now or datetime.now()
    decayed = apply_time_decay(user_rating, now)

    mu = to_glicko_scale(decayed.rating)
    phi = rd_to_glicko_scale(decayed.rd)
    sigma = decayed.volatility

    mu_j = to_glicko_scale(problem_rating)
    phi_j = rd_to_glicko_scale(PROBLEM_RD)

    g_phi_j = g(phi_j)
    expected = E(mu, mu_j, phi_j)
    variance_term = g_phi_j * g_phi_j * expected * (1 - expected)
    if variance_term <= 0:
        raise RatingComputationError(
            f"Degenerate performance variance (expected score {expected})"
        )
    v = 1 / variance_term

    delta = v * g_phi_j * (actual_outcome - expected)

    new_sigma = _solve_volatility(phi, sigma, v, delta, max_iterations)

    phi_star = math.sqrt(phi * phi + new_sigma * new_sigma)
    new_phi = 1 / math.sqrt(1 / (phi_star * phi_star) + 1 / v)
    new_mu = mu + new_phi * new_phi * g_phi_j * (actual_outcome - expected)

    new_rating = min(MAX_RATING, max(MIN_RATING, from_glicko_scale(new_mu)))
    new_rd = min(MAX_RD, max(MIN_RD, rd_from_glicko_scale(new_phi)))

    return UserRating(
        rating=round_half_up(new_rating),
        rd=round_half_up(new_rd),
        volatility=new_sigma,
        last_updated=now,
        solve_count=decayed.solve_count + 1,
    )
