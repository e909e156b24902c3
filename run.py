import argparse
import logging
import sys

from bangroute import create_app
from bangroute.config import Config

logging.getLogger("werkzeug").disabled = True
sys.modules["flask.cli"].show_server_banner = lambda *x: None


def main() -> None:
    parser = argparse.ArgumentParser(prog="bangroute", description="Run the BangRoute server.")
    parser.add_argument("--host", default=Config.HOST)
    parser.add_argument("--port", type=int, default=Config.PORT)
    args = parser.parse_args()

    app = create_app()
    print(f"BangRoute redirecting on http://{args.host}:{args.port}/?q=", flush=True)
    app.run(host=args.host, port=args.port, debug=False)


if __name__ == "__main__":
    main()
