from ctfixture.cli import main

main()
