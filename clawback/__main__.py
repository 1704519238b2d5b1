from clawback.cli import main

main()
