from enum import IntEnum


class ReportingLevel(IntEnum):
    QUIET = 0
    BASIC = 1
    VERBOSE = 2


def color_text(text, color_code):
    return f"\033[{color_code}m{text}\033[0m"

def debug_text(text):
    return f"{color_text('DEBUG', '31')} {text}"

def info_text(text):
    return f"{color_text('INFO', '34')}  {text}"

def sending_text(text):
    return f"{color_text('SENDING  ', '32')} {text}"

def recieved_text(text):
    return f"{color_text('RECIEVED ', '35')} {text}"

def move_text(text):
    return f"{color_text('MOVE', '33')}  {text}"


def cleanup(process, app, dev=False, quit_app=True):
    """Stop the engine process and optionally quit the Qt application."""
    if dev:
        print(debug_text("Cleaning up resources..."))

    if process is not None:
        # Deferred import keeps the helpers above usable without Qt.
        from PySide6.QtCore import QProcess

        if process.state() != QProcess.NotRunning:
            process.terminate()
            if not process.waitForFinished(2000):
                if dev:
                    print(debug_text("Engine process unresponsive; forcing termination"))
                process.kill()
                process.waitForFinished(1000)
        process.close()

    if quit_app and app is not None:
        app.quit()
