"""Marginal heat maps for the card tracker.

Two data builders return NumPy matrices that can be used programmatically or
passed to the plot helpers:

    build_expected_matrix(tracker)               — expected count per player/card
    build_distribution_matrix(tracker, player)   — P(count) per card for one player

Two plot functions render matplotlib figures:

    plot_expected_hands(tracker, ...)            — players × card types
    plot_card_distribution(tracker, player, ...) — card types × counts

Matrix conventions:
    expected     : shape (player_count, n_card_types), float64 expected counts.
    distribution : shape (n_card_types, max_count + 1), float64 probabilities;
                   each row sums to 1.
"""

from __future__ import annotations

import matplotlib.axes
import matplotlib.figure
import matplotlib.pyplot as plt
import numpy as np

from catan_tracker.engine.tracker import CardTracker

_COUNT_CMAP: str = "YlOrBr"
_PROBABILITY_CMAP: str = "Blues"


# ─── Data builders ────────────────────────────────────────────────────────────


def build_expected_matrix(tracker: CardTracker) -> np.ndarray:
    """Return expected card counts, shape (player_count, n_card_types).

    Row i is player i + 1; columns follow tracker.card_types.
    """
    matrix = np.zeros((tracker.player_count, len(tracker.card_types)))
    for player in range(1, tracker.player_count + 1):
        marginals = tracker.marginals(player)
        for c, card in enumerate(tracker.card_types):
            matrix[player - 1, c] = marginals[card].expected
    return matrix


def build_distribution_matrix(
    tracker: CardTracker,
    player: int,
    max_count: int | None = None,
) -> np.ndarray:
    """Return P(count) per card type for *player*.

    Args:
        tracker:   The tracker to read.
        player:    Player id.
        max_count: Last count column. Defaults to the largest count seen in
                   any World. Mass above max_count is dropped.

    Returns:
        float64 array of shape (n_card_types, max_count + 1).
    """
    marginals = tracker.marginals(player)
    if max_count is None:
        max_count = max((m.max for m in marginals.cards.values()), default=0)

    matrix = np.zeros((len(tracker.card_types), max_count + 1))
    for r, card in enumerate(tracker.card_types):
        for count, prob in marginals[card].distribution.items():
            if count <= max_count:
                matrix[r, count] = prob
    return matrix


# ─── Rendering helper ─────────────────────────────────────────────────────────


def _annotate(ax: matplotlib.axes.Axes, data: np.ndarray, fmt: str, threshold: float) -> None:
    for r in range(data.shape[0]):
        for c in range(data.shape[1]):
            val = data[r, c]
            if val == 0.0:
                continue
            ax.text(
                c,
                r,
                format(val, fmt),
                ha="center",
                va="center",
                fontsize=8,
                color="white" if val > threshold else "black",
            )


def _finish(fig: matplotlib.figure.Figure, show: bool, save_path: str | None) -> None:
    plt.tight_layout()
    if save_path is not None:
        fig.savefig(save_path, bbox_inches="tight", dpi=120)
    if show:
        plt.show()


# ─── Public plot functions ────────────────────────────────────────────────────


def plot_expected_hands(
    tracker: CardTracker,
    title: str = "Expected hands",
    *,
    show: bool = True,
    save_path: str | None = None,
) -> matplotlib.figure.Figure:
    """Heat map of expected counts: rows = players, columns = card types.

    Args:
        tracker:   The tracker to read.
        title:     Figure title; the turn and world count are appended.
        show:      If True, call plt.show() after rendering.
        save_path: If not None, save the figure to this path before showing.

    Returns:
        matplotlib.figure.Figure.
    """
    data = build_expected_matrix(tracker)
    vmax = max(float(data.max()), 1.0)

    fig, ax = plt.subplots(figsize=(1.2 * len(tracker.card_types) + 2, 0.6 * tracker.player_count + 2))
    im = ax.imshow(data, cmap=_COUNT_CMAP, vmin=0.0, vmax=vmax, aspect="auto")
    _annotate(ax, data, ".2f", vmax * 0.6)

    ax.set_xticks(range(len(tracker.card_types)))
    ax.set_xticklabels(tracker.card_types, fontsize=9)
    ax.set_yticks(range(tracker.player_count))
    ax.set_yticklabels([f"P{p}" for p in range(1, tracker.player_count + 1)], fontsize=9)
    ax.set_xlabel("Card type", fontsize=9)
    ax.set_ylabel("Player", fontsize=9)
    ax.set_title(
        f"{title}  (turn {tracker.turn}, {tracker.world_count} worlds)",
        fontsize=11,
        fontweight="bold",
    )
    plt.colorbar(im, ax=ax, label="E[count]", fraction=0.046, pad=0.04)

    _finish(fig, show, save_path)
    return fig


def plot_card_distribution(
    tracker: CardTracker,
    player: int,
    *,
    max_count: int | None = None,
    show: bool = True,
    save_path: str | None = None,
) -> matplotlib.figure.Figure:
    """Heat map of P(count) for one player: rows = card types, columns = counts.

    The title carries the player's confidence score.

    Returns:
        matplotlib.figure.Figure.
    """
    data = build_distribution_matrix(tracker, player, max_count=max_count)

    fig, ax = plt.subplots(figsize=(0.6 * data.shape[1] + 3, 0.5 * data.shape[0] + 2))
    im = ax.imshow(data, cmap=_PROBABILITY_CMAP, vmin=0.0, vmax=1.0, aspect="auto")
    _annotate(ax, data, ".2f", 0.6)

    ax.set_xticks(range(data.shape[1]))
    ax.set_xticklabels([str(c) for c in range(data.shape[1])], fontsize=9)
    ax.set_yticks(range(len(tracker.card_types)))
    ax.set_yticklabels(tracker.card_types, fontsize=9)
    ax.set_xlabel("Count", fontsize=9)
    ax.set_ylabel("Card type", fontsize=9)
    ax.set_title(
        f"Player {player} card distribution  (confidence {tracker.confidence(player):.2f})",
        fontsize=11,
        fontweight="bold",
    )
    plt.colorbar(im, ax=ax, label="P(count)", fraction=0.046, pad=0.04)

    _finish(fig, show, save_path)
    return fig
