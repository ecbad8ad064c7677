from paybench.cli.main import main

main()
