from fipsbuild.cli import run

run()
