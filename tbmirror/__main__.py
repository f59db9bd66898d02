from tbmirror.main import run

run()
