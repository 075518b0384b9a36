"""
Run one ForexPro service, or all of them as separate processes.

    python serve.py                 # every service, each on its own port
    python serve.py trading admin   # just these
    SERVICE=payments python serve.py
"""
from gevent import monkey
monkey.patch_all()

import argparse
import logging
import multiprocessing
import os
import sys

from gevent.pywsgi import WSGIServer

from config import SERVICE_PORTS, service_port

logger = logging.getLogger("serve")


def run_service(service):
    from app import create_app

    app = create_app(service)
    port = service_port(service)
    app.logger.info(f"{service} service listening on port {port}")
    WSGIServer(("0.0.0.0", port), app, log=None).serve_forever()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Start ForexPro services")
    parser.add_argument("services", nargs="*", help=f"any of: {', '.join(SERVICE_PORTS)}")
    args = parser.parse_args(argv)

    services = args.services or ([os.environ["SERVICE"]] if os.getenv("SERVICE") else list(SERVICE_PORTS))
    unknown = [s for s in services if s not in SERVICE_PORTS]
    if unknown:
        parser.error(f"unknown service(s): {', '.join(unknown)}")

    if len(services) == 1:
        run_service(services[0])
        return 0

    processes = []
    for service in services:
        proc = multiprocessing.Process(target=run_service, args=(service,), name=f"forexpro-{service}")
        proc.start()
        logger.info(f"Started {service} (pid {proc.pid}) on port {service_port(service)}")
        processes.append(proc)

    try:
        for proc in processes:
            proc.join()
    except KeyboardInterrupt:
        for proc in processes:
            proc.terminate()
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    sys.exit(main())
