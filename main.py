# MAIN
import argparse
import random
import sys
from typing import Callable, Optional

import chess

try:  # pragma: no cover - Qt is only needed to run the live loop
    from PySide6.QtCore import QCoreApplication, QProcess, QTimer, QUrl
    from PySide6.QtNetwork import QAbstractSocket, QNetworkRequest
    from PySide6.QtWebSockets import QWebSocket
except ImportError:  # pragma: no cover
    QCoreApplication = None  # type: ignore[assignment]
    QProcess = None  # type: ignore[assignment]

from engine_session import DEFAULT_MULTIPV, EngineSession
from game_state import COLOR_NAME, GameState, PositionMode
from interceptor import GameResult, TransportInterceptor
from utils import ReportingLevel, cleanup, debug_text, info_text, recieved_text, sending_text

COLOR_BY_NAME = {"white": chess.WHITE, "black": chess.BLACK}


class QtWebSocketTransport:
    """Transport handle over an already created ``QWebSocket``."""

    def __init__(self, socket) -> None:
        self._socket = socket

    def subscribe(self, callback: Callable[[str], None]) -> None:
        self._socket.textMessageReceived.connect(callback)

    def send(self, text: str) -> None:
        self._socket.sendTextMessage(text)

    def is_open(self) -> bool:
        return self._socket.state() == QAbstractSocket.SocketState.ConnectedState


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Paced, target-evaluation move selection for live games")
    parser.add_argument("--engine", default="stockfish", help="UCI engine executable or Python engine script")
    parser.add_argument("--url", required=True, help="Websocket URL of the live game")
    parser.add_argument(
        "--color",
        required=True,
        choices=sorted(COLOR_BY_NAME),
        help="Color this bot plays in the game",
    )
    parser.add_argument("--cookie", help="Raw Cookie header sent with the websocket handshake")
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in PositionMode],
        default=PositionMode.MOVES.value,
        help="Send the engine the full move list or the transport's board position",
    )
    parser.add_argument("--multipv", type=int, default=DEFAULT_MULTIPV, help="Candidate moves per search")
    parser.add_argument("--seed", type=int, help="Seed for the delay randomizer")
    parser.add_argument("-dev", action="store_true", help="Echo engine and transport traffic")
    parser.add_argument("-quiet", action="store_true", help="Only report errors")
    return parser.parse_args(argv)


def resolve_reporting_level(args) -> ReportingLevel:
    if args.quiet:
        return ReportingLevel.QUIET
    if args.dev:
        return ReportingLevel.VERBOSE
    return ReportingLevel.BASIC


def engine_command(path: str):
    if path.endswith(".py"):
        return sys.executable, [path]
    return path, []


def send_command(proc, command: str, reporting_level: ReportingLevel = ReportingLevel.BASIC) -> None:
    if reporting_level >= ReportingLevel.VERBOSE:
        print(sending_text(f"Engine {command}"))
    proc.write((command + "\n").encode())


def engine_output_processor(
    proc,
    session: EngineSession,
    reporting_level: ReportingLevel = ReportingLevel.BASIC,
) -> None:
    while proc.canReadLine():
        output = bytes(proc.readLine()).decode().strip()
        if not output:
            continue
        if reporting_level >= ReportingLevel.VERBOSE:
            print(recieved_text(f"Engine {output}"))
        session.on_analysis_line(output)


def start_engine_process(proc, path: str, reporting_level: ReportingLevel = ReportingLevel.BASIC) -> bool:
    program, arguments = engine_command(path)
    proc.setProcessChannelMode(QProcess.MergedChannels)
    proc.start(program, arguments)
    if not proc.waitForStarted(5000):
        print(info_text(f"Engine failed to start within timeout: {path}"))
        return False
    send_command(proc, "uci", reporting_level)
    return True


def open_socket(url: str, cookie: Optional[str] = None):
    socket = QWebSocket()
    request = QNetworkRequest(QUrl(url))
    if cookie:
        request.setRawHeader(b"Cookie", cookie.encode())
    socket.open(request)
    return socket


def report_result(result: GameResult, bot_color: chess.Color) -> None:
    score = result.score_for(bot_color)
    clocks = ""
    if result.white_clock is not None and result.black_clock is not None:
        clocks = f", clocks {result.white_clock}/{result.black_clock}"
    print(info_text(f"Result: {result.describe()}; bot scored {score:g}{clocks}"))


def main(argv=None):
    args = parse_args(argv)
    if QCoreApplication is None or QProcess is None:
        raise ImportError("PySide6 is required to run the bot; install PySide6.")

    reporting_level = resolve_reporting_level(args)
    bot_color = COLOR_BY_NAME[args.color]
    dev = reporting_level >= ReportingLevel.VERBOSE
    rng = random.Random(args.seed)

    app = QCoreApplication(sys.argv)

    proc = QProcess()
    if not start_engine_process(proc, args.engine, reporting_level):
        raise RuntimeError(f"Engine could not be started: {args.engine}")

    session = EngineSession(
        proc,
        lambda process, command: send_command(process, command, reporting_level),
        multipv=args.multipv,
    )
    session.configure()
    proc.readyReadStandardOutput.connect(
        lambda: engine_output_processor(proc, session, reporting_level)
    )

    def engine_finished(*_args) -> None:
        print(debug_text("Engine process terminated"))
        app.quit()

    proc.finished.connect(engine_finished)

    state = GameState(mode=PositionMode(args.mode))
    state.assign_bot_color(bot_color)
    print(info_text(f"Playing as: {COLOR_NAME[bot_color]}"))

    socket = open_socket(args.url, args.cookie)
    transport = QtWebSocketTransport(socket)

    def game_over(result: GameResult) -> None:
        report_result(result, bot_color)
        app.quit()

    interceptor = TransportInterceptor(
        transport,
        session,
        state,
        schedule=lambda delay, callback: QTimer.singleShot(delay, callback),
        rng=rng,
        reporting_level=reporting_level,
        on_game_end=game_over,
    )

    def inbound(message: str) -> None:
        if dev:
            print(recieved_text(f"Transport {message}"))
        interceptor.on_transport_message(message)

    transport.subscribe(inbound)
    socket.connected.connect(interceptor.begin)

    def disconnected() -> None:
        if interceptor.result is None:
            print(debug_text("Transport disconnected before the game ended"))
        app.quit()

    socket.disconnected.connect(disconnected)

    def shutdown():
        try:
            proc.finished.disconnect(engine_finished)
        except (RuntimeError, TypeError):
            pass
        if proc.state() != QProcess.NotRunning:
            send_command(proc, "quit", reporting_level)
            proc.closeWriteChannel()
        cleanup(proc, app, dev=dev, quit_app=False)
        socket.close()

    app.aboutToQuit.connect(shutdown)
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
