"""
RAG and AI SDK demos:
- ask: PDF question answering (in-memory FAISS or Chroma server)
- embed / translate / qa: hosted Hugging Face inference
- generate: local text2text model
"""

from argparse import ArgumentParser, Namespace
from typing import List, Optional
import logging
import sys

from core.config import Settings
from core.errors import RAGError
from core.pipeline import RAGPipeline
from generation.hosted import HostedInference
from generation.local import LocalTextGenerator

LOGGER = logging.getLogger(__name__)


def _unescape(separator: str) -> str:
    return separator.replace("\\n", "\n").replace("\\t", "\t")


def run_ask(args: Namespace, settings: Settings) -> None:
    if args.backend:
        settings.vector_backend = args.backend
    if args.separator:
        settings.separators = tuple(_unescape(s) for s in args.separator)
    pipeline = RAGPipeline.from_settings(settings)

    indexed = pipeline.ingest_path(args.document, split_pages=args.split_pages)
    LOGGER.info("Indexed %d new chunks (%d total)", len(indexed), len(pipeline.index))

    result = pipeline.ask(args.question, k=settings.top_k if args.k is None else args.k)
    if args.show_chunks:
        for i, (chunk, score) in enumerate(result.retrieved.hits, 1):
            print(f"[{i}] {score:.3f} | {chunk.summary(80)}")
        print()
    print(result.answer.text)


def run_embed(args: Namespace, settings: Settings) -> None:
    client = HostedInference(token=settings.hf_token, timeout=settings.request_timeout)
    output = client.feature_extraction(args.text, model=args.model)
    print("Embedding:", output)


def run_translate(args: Namespace, settings: Settings) -> None:
    client = HostedInference(token=settings.hf_token, timeout=settings.request_timeout)
    print("Translation:", client.translation(args.text, model=args.model))


def run_qa(args: Namespace, settings: Settings) -> None:
    client = HostedInference(token=settings.hf_token, timeout=settings.request_timeout)
    output = client.question_answering(args.question, args.context, model=args.model)
    print("Question answering:", output)


def run_generate(args: Namespace, settings: Settings) -> None:
    generator = LocalTextGenerator(model_name=args.model, timeout=settings.request_timeout)
    overrides = {}
    if args.max_new_tokens:
        overrides["max_new_tokens"] = args.max_new_tokens
    print(generator.generate(args.prompt, **overrides))


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(description="RAG pipeline and hosted/local model demos.")
    parser.add_argument("-v", "--verbose", help="Show debug logs", action="store_true")
    commands = parser.add_subparsers(dest="command", required=True)

    ask = commands.add_parser("ask", help="Answer a question about a document")
    ask.add_argument("document", help="PDF or text file to index")
    ask.add_argument("question", help="Question to ask about the document")
    ask.add_argument("-k", type=int, help="Number of chunks to retrieve (default: RAG_TOP_K)")
    ask.add_argument("--backend", choices=["memory", "chroma"], help="Vector index backend")
    ask.add_argument(
        "--separator",
        action="append",
        help="Split on this separator, in priority order; repeat for more (\\n for newline)",
    )
    ask.add_argument("--split-pages", help="Index each PDF page separately", action="store_true")
    ask.add_argument("--show-chunks", help="Print the retrieved chunks", action="store_true")
    ask.set_defaults(handler=run_ask)

    embed = commands.add_parser("embed", help="Hosted feature extraction")
    embed.add_argument("text")
    embed.add_argument("--model")
    embed.set_defaults(handler=run_embed)

    translate = commands.add_parser("translate", help="Hosted translation")
    translate.add_argument("text")
    translate.add_argument("--model")
    translate.set_defaults(handler=run_translate)

    qa = commands.add_parser("qa", help="Hosted extractive question answering")
    qa.add_argument("question")
    qa.add_argument("--context", required=True)
    qa.add_argument("--model")
    qa.set_defaults(handler=run_qa)

    generate = commands.add_parser("generate", help="Local text2text generation")
    generate.add_argument("prompt")
    generate.add_argument("--model", default="MBZUAI/LaMini-Flan-T5-783M")
    generate.add_argument("--max-new-tokens", type=int)
    generate.set_defaults(handler=run_generate)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        settings = Settings.from_env()
        args.handler(args, settings)
    except RAGError as e:
        LOGGER.error("%s failed (%s): %s", e.stage, type(e).__name__, e.message)
        return 1
    except ValueError as e:
        LOGGER.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
