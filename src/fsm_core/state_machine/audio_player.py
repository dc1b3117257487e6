"""Audio player with ready, playing and paused states."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from enum import StrEnum

from fsm_core.logging import AnyLogger, log_info
from fsm_core.state_machine.machine import State, StateMachine, TransitionListener


class PlayerAction(StrEnum):
    """What the player did in response to a button press."""

    STARTED = "started"
    RESUMED = "resumed"
    PAUSED = "paused"
    STOPPED = "stopped"
    IGNORED = "ignored"


class PlayerState(State, ABC):
    @abstractmethod
    def play(self, player: AudioPlayer) -> PlayerAction:
        """Handle the play button."""

    @abstractmethod
    def pause(self, player: AudioPlayer) -> PlayerAction:
        """Handle the pause button."""

    @abstractmethod
    def stop(self, player: AudioPlayer) -> PlayerAction:
        """Handle the stop button."""

    def _ignore(self, player: AudioPlayer, event: str) -> PlayerAction:
        log_info(
            player.logger,
            "audio_player.event_ignored",
            player=player.name,
            ignored_event=event,
            state=self.name,
        )
        return PlayerAction.IGNORED


class ReadyState(PlayerState):
    def play(self, player: AudioPlayer) -> PlayerAction:
        log_info(player.logger, "audio_player.playback_started", player=player.name)
        player.set_state(PlayingState())
        return PlayerAction.STARTED

    def pause(self, player: AudioPlayer) -> PlayerAction:
        # Pausing before playback starts parks the player on the song list.
        log_info(player.logger, "audio_player.paused", player=player.name)
        player.set_state(PausedState())
        return PlayerAction.PAUSED

    def stop(self, player: AudioPlayer) -> PlayerAction:
        return self._ignore(player, "stop")


class PlayingState(PlayerState):
    def play(self, player: AudioPlayer) -> PlayerAction:
        return self._ignore(player, "play")

    def pause(self, player: AudioPlayer) -> PlayerAction:
        log_info(player.logger, "audio_player.paused", player=player.name)
        player.set_state(PausedState())
        return PlayerAction.PAUSED

    def stop(self, player: AudioPlayer) -> PlayerAction:
        log_info(player.logger, "audio_player.stopped", player=player.name)
        player.set_state(ReadyState())
        return PlayerAction.STOPPED


class PausedState(PlayerState):
    def play(self, player: AudioPlayer) -> PlayerAction:
        log_info(player.logger, "audio_player.playback_resumed", player=player.name)
        player.set_state(PlayingState())
        return PlayerAction.RESUMED

    def pause(self, player: AudioPlayer) -> PlayerAction:
        return self._ignore(player, "pause")

    def stop(self, player: AudioPlayer) -> PlayerAction:
        log_info(player.logger, "audio_player.stopped", player=player.name)
        player.set_state(ReadyState())
        return PlayerAction.STOPPED


class AudioPlayer(StateMachine[PlayerState]):
    """Media player that starts in ``ReadyState``."""

    def __init__(
        self,
        initial_state: PlayerState | None = None,
        *,
        name: str | None = None,
        listeners: Sequence[TransitionListener] | None = None,
        logger: AnyLogger | None = None,
    ) -> None:
        super().__init__(
            ReadyState() if initial_state is None else initial_state,
            name=name,
            listeners=listeners,
            logger=logger,
        )

    def play(self) -> PlayerAction:
        return self.dispatch("play")

    def pause(self) -> PlayerAction:
        return self.dispatch("pause")

    def stop(self) -> PlayerAction:
        return self.dispatch("stop")
