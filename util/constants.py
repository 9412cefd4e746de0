class InternalURIs:
    ROOT = "/"
    HEALTHZ = "/healthz"
    COMPILE = "/compile"
    COMPILE_WITH_PROFILER = "/compile-with-profiler"
    GENERATE_PROOF = "/generate-proof"
    GENERATE_PROOF_WITH_VERIFIER = "/generate-proof-with-verifier"
    LOGS_WS = "/ws/"


class ArchiveNames:
    PROOF = "proof"
    VK = "vk"
    PROVER = "Prover.toml"
    CIRCUIT_DIR = "circuit"
    SOLIDITY_VERIFIER = "verifier/solidity/Verifier.sol"
    CAIRO_DIR = "verifier/cairo"
    PROFILER_DIR = "profiler"
