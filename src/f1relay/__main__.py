from f1relay.cli.main import main

main()
