from bastion.app.main import run

run()
