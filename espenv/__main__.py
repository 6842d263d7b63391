from espenv.cli.app import main

main()
