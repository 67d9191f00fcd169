#!/usr/bin/env python3
"""
Interactive CLI for the Srimad Bhagavatam Q&A engine

Features:
- Follow-up aware conversation ("tell me more", "how can I practice this?")
- English and Hindi knowledge bases
- Optional AI synthesis over the retrieved teachings
- Session statistics, history and export
"""

import os
import json
import time
from datetime import datetime
from typing import Dict, Optional
import atexit

try:
    import readline
    HAS_READLINE = True
except ImportError:
    HAS_READLINE = False

from conversation import Conversation, ConversationTurn
from corpus_loader import LoadError
from knowledge_service import knowledge_service, config
from llm_service import LLMService
from translation_service import TranslationService
from wisdom_atlas import DOMAINS_BY_ID

SUPPORTED_LANGUAGES = ('en', 'hi')
COMMANDS = ('stats', 'system', 'atlas', 'history', 'reset', 'lang', 'ai', 'debug', 'export', 'help', 'exit', 'quit')


class InteractiveSession:
    """Interactive session with history and statistics"""

    def __init__(self):
        self.query_history = []
        self.session_start = time.time()
        self.total_queries = 0
        self.follow_ups = 0
        self.total_duration = 0.0

        if HAS_READLINE:
            self.setup_readline()

    def setup_readline(self):
        """Configure readline for command history"""
        histfile = os.path.join(os.path.expanduser("~"), ".bhagavatam_qa_history")

        try:
            readline.read_history_file(histfile)
            readline.set_history_length(1000)
        except FileNotFoundError:
            pass

        atexit.register(readline.write_history_file, histfile)
        readline.parse_and_bind('tab: complete')

    def add_turn(self, turn: ConversationTurn, duration: float):
        """Record a turn in session history"""
        entry = turn.to_dict()
        entry['duration'] = duration
        self.query_history.append(entry)

        self.total_queries += 1
        self.total_duration += duration
        if turn.is_follow_up:
            self.follow_ups += 1

    def get_session_stats(self) -> Dict:
        """Get current session statistics"""
        session_duration = time.time() - self.session_start
        avg = self.total_duration / self.total_queries if self.total_queries else 0.0

        return {
            "session_duration": f"{session_duration/60:.1f} minutes",
            "total_queries": self.total_queries,
            "follow_ups": self.follow_ups,
            "avg_response_time": f"{avg:.3f}s"
        }


def print_banner():
    banner = """
╔══════════════════════════════════════════════════════════════╗
║           🪷 Srimad Bhagavatam Q&A - Interactive Mode         ║
╠══════════════════════════════════════════════════════════════╣
║ Commands:                                                    ║
║   📝 Type your question in English or Hindi                  ║
║   📊 'stats'       - Show session statistics                 ║
║   📈 'system'      - Show knowledge base information         ║
║   🗺️ 'atlas [id]'  - Browse questions by domain              ║
║   📋 'history'     - Show conversation history               ║
║   🔁 'reset'       - Start a new conversation                ║
║   🌐 'lang en|hi'  - Switch language                         ║
║   🤖 'ai on|off'   - Toggle AI synthesis                     ║
║   🔧 'debug on|off'- Toggle scoring details                  ║
║   💾 'export'      - Export session history                  ║
║   ❓ 'help'        - Show detailed help                      ║
║   🚪 'exit'        - Exit the application                    ║
╚══════════════════════════════════════════════════════════════╝
"""
    print(banner)


def print_help(topic: Optional[str] = None):
    if topic == "examples":
        print("""
📖 Sample Questions:

• Who am I?
• What is bhakti?
• How do I find inner peace?
• What happens after death?
• मैं कौन हूँ?
• भक्ति क्या है?

Follow-ups (after an answer):
• Tell me more
• How can I practice this?
• What are the obstacles?
• Give me an example
""")
    else:
        print("""
❓ Detailed Help:

🎯 Answers come from the loaded knowledge base, ranked by keyword,
   word overlap, curated index terms and popularity.
🔁 Follow-up questions reuse the topic of the previous answer.
   'reset' clears that context.
🤖 With 'ai on' and GROQ_API_KEY set, retrieved teachings are
   synthesized into a short answer. Without a key the retrieved
   answer is shown as is.

🗺️  'atlas' groups questions into domains such as karma or devotion;
   'atlas karma' lists the questions of one domain.

Type 'help examples' for sample questions
""")


def format_turn(turn: ConversationTurn, debug: bool = False) -> str:
    """Format a conversation turn for the terminal"""
    result = turn.result
    if result is None:
        return f"\n❌ {turn.answer}\n"

    confidence_emoji = "🟢" if result.confidence > 60 else "🟡" if result.confidence > 30 else "🟠"
    output = f"""
{confidence_emoji} {result.title} (Confidence: {result.confidence}%)

{turn.answer}

📖 Reference: {result.reference}
"""
    if turn.translated:
        output += "🌐 Translated from the English knowledge base\n"
    if turn.ai_model:
        output += f"🤖 Synthesized by {turn.ai_model}\n"
    elif turn.error:
        output += f"ℹ️  AI synthesis unavailable ({turn.error})\n"

    if debug:
        output += f"\n🔧 Debug Information:\n   • Intent: {turn.intent.value}\n   • Query used: {turn.query}\n"
        for i, candidate in enumerate(turn.results, 1):
            output += f"   {i}. [{candidate.question_id}] {candidate.title[:50]} (score: {candidate.score:.2f})\n"

    return output


def handle_command(command: str, session: InteractiveSession, conversation: Conversation, debug: bool) -> tuple:
    """Handle special commands"""
    command = command.lower().strip()
    parts = command.split()

    if command == "stats":
        stats = session.get_session_stats()
        print(f"""
📊 Session Statistics:
   • Duration: {stats['session_duration']}
   • Total Queries: {stats['total_queries']}
   • Follow-ups: {stats['follow_ups']}
   • Avg Response: {stats['avg_response_time']}
""")
        return debug, True

    elif command == "system":
        system_stats = knowledge_service.get_system_stats()
        print("\n🖥️  System Information:")
        print(f"   • Initialized: {system_stats['initialized']}")
        print(f"   • Default Language: {system_stats['default_language']}")
        for language, info in system_stats['corpora'].items():
            print(f"   • [{language}] {info['questions']} questions, {info['verses']} verses, "
                  f"{info['index_terms']} index terms, {len(info['cantos'])} cantos")
        return debug, True

    elif parts[0] == "atlas":
        try:
            atlas = knowledge_service.wisdom_atlas(conversation.language)
        except LoadError as e:
            print(f"❌ Could not load the knowledge base: {e}")
            return debug, True

        if len(parts) > 1:
            if parts[1] not in DOMAINS_BY_ID:
                print(f"❓ Unknown domain: {parts[1]} (available: {', '.join(DOMAINS_BY_ID)})")
                return debug, True
            stats = atlas[parts[1]]
            print(f"\n{stats.domain.icon} {stats.domain.display_name(conversation.language)}")
            for entry in stats.questions():
                print(f"   • [{entry.difficulty.value if entry.difficulty else '-'}] {entry.question}")
            if stats.cantos:
                print(f"   📖 Cantos: {', '.join(stats.cantos)}")
        else:
            print("\n🗺️  Wisdom Atlas:")
            for stats in atlas.values():
                print(f"   {stats.domain.icon} {stats.domain.id:<11} {stats.domain.display_name(conversation.language)}: "
                      f"{stats.total} questions ({stats.foundational} foundational, "
                      f"{stats.intermediate} intermediate, {stats.advanced} advanced)")
        return debug, True

    elif command == "history":
        if not conversation.history:
            print("📝 No questions in current conversation")
        else:
            print(f"📋 Conversation History ({len(conversation.history)} turns):")
            for i, turn in enumerate(conversation.history[-10:], 1):
                status = "🔁" if turn.is_follow_up else "❓"
                print(f"   {i}. {status} {turn.question[:50]}")
        return debug, True

    elif command == "reset":
        conversation.reset()
        print("🔁 Conversation reset")
        return debug, True

    elif parts[0] == "lang":
        if len(parts) > 1 and parts[1] in SUPPORTED_LANGUAGES:
            conversation.set_language(parts[1])
            print(f"🌐 Language set to {parts[1]}")
        else:
            print(f"🌐 Current language: {conversation.language} (available: {', '.join(SUPPORTED_LANGUAGES)})")
        return debug, True

    elif parts[0] == "ai":
        if "on" in parts:
            conversation.use_ai = True
            if conversation.llm is None or not conversation.llm.available:
                print("⚠️  No API key configured, answers will stay retrieval-only")
            print("🤖 AI synthesis enabled")
        elif "off" in parts:
            conversation.use_ai = False
            print("🤖 AI synthesis disabled")
        else:
            print(f"🤖 AI synthesis is currently {'ON' if conversation.use_ai else 'OFF'}")
        return debug, True

    elif parts[0] == "debug":
        if "on" in parts:
            print("🔧 Debug mode enabled")
            return True, True
        elif "off" in parts:
            print("🔇 Debug mode disabled")
            return False, True
        else:
            print(f"🔧 Debug mode is currently {'ON' if debug else 'OFF'}")
            return debug, True

    elif command == "export":
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filename = f"session_export_{timestamp}.json"

        export_data = {
            "session_info": session.get_session_stats(),
            "language": conversation.language,
            "query_history": session.query_history,
            "exported_at": datetime.now().isoformat()
        }

        try:
            with open(filename, 'w', encoding='utf-8') as f:
                json.dump(export_data, f, ensure_ascii=False, indent=2)
            print(f"💾 Session exported to: {filename}")
        except OSError as e:
            print(f"❌ Export failed: {e}")

        return debug, True

    elif parts[0] == "help":
        print_help(parts[1] if len(parts) > 1 else None)
        return debug, True

    elif command in ["exit", "quit", "q"]:
        return debug, False

    else:
        print(f"❓ Unknown command: {command}")
        print("Type 'help' for available commands")
        return debug, True


def is_command(user_input: str) -> bool:
    words = user_input.lower().split()
    return bool(words) and words[0] in COMMANDS and len(words) <= 2


def main():
    session = InteractiveSession()
    debug_mode = False

    print_banner()

    if not knowledge_service.initialized:
        print("🔄 Loading knowledge base...")
        if not knowledge_service.initialize():
            print("❌ Failed to load the knowledge base")
            return
        print("✅ Knowledge base loaded")

    llm = LLMService(config)
    conversation = Conversation(
        knowledge_service,
        language=config['corpus'].get('default_language', 'en'),
        llm=llm,
        translator=TranslationService(config),
        use_ai=llm.available
    )

    mode_info = "🤖 AI synthesis on" if conversation.use_ai else "📖 Retrieval only"
    print(f"\n{mode_info} | Ready to answer your questions!")
    print("=" * 50)

    while True:
        try:
            debug_indicator = " (debug)" if debug_mode else ""
            prompt = f"🪷 [{conversation.language}] Ask{debug_indicator} » "

            try:
                user_input = input(prompt).strip()
            except EOFError:
                print("\n👋 Goodbye!")
                break

            if not user_input:
                continue

            if is_command(user_input):
                debug_mode, should_continue = handle_command(user_input, session, conversation, debug_mode)
                if not should_continue:
                    break
                continue

            start_time = time.time()
            turn = conversation.ask(user_input)
            duration = time.time() - start_time
            session.add_turn(turn, duration)

            print(format_turn(turn, debug_mode))
            if turn.result is not None:
                print("💡 You could ask: " + " | ".join(conversation.suggest_follow_ups()))

            print("=" * 50)

        except KeyboardInterrupt:
            print("\n\n⏸️  Interrupted. Type 'exit' to quit or continue with another question.")
            continue

    stats = session.get_session_stats()
    print(f"""
📊 Session Summary:
   • Duration: {stats['session_duration']}
   • Questions Asked: {stats['total_queries']}
   • Follow-ups: {stats['follow_ups']}

Hari Om 🙏
""")


if __name__ == "__main__":
    main()
