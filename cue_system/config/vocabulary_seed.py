"""Built-in seed vocabulary and context linkage table.

Used when no vocabulary file is configured. Deployments normally load a
curated JSON vocabulary through InMemoryVocabularyRegistry.from_json().
"""

from cue_system.data_management.schemas.vocabulary_schema import (
    EMOTION,
    FILM_TYPE,
    INSTRUMENT,
    SCENARIO,
    STYLE,
    LinkageRule,
    VocabularyEntry,
)


def _entry(category: str, term: str, aliases=(), contexts=()) -> VocabularyEntry:
    return VocabularyEntry(
        category=category,
        canonical_term=term,
        aliases=set(aliases),
        compatible_contexts=set(contexts),
    )


SEED_ENTRIES: list[VocabularyEntry] = [
    # Film types
    _entry(FILM_TYPE, "警匪片", ["警匪", "犯罪片", "crime"]),
    _entry(FILM_TYPE, "推理剧", ["推理", "侦探剧", "mystery"]),
    _entry(FILM_TYPE, "校园剧", ["校园", "青春片"]),
    _entry(FILM_TYPE, "动作片", ["动作", "action"]),
    _entry(FILM_TYPE, "谍战片", ["谍战", "间谍片"]),
    _entry(FILM_TYPE, "爱情片", ["爱情", "romance"]),
    # Emotions
    _entry(EMOTION, "紧张", ["紧迫", "紧张感", "tense"]),
    _entry(EMOTION, "冷静", ["平静", "沉着", "calm"]),
    _entry(EMOTION, "悬疑", ["神秘", "诡异", "suspense"]),
    _entry(EMOTION, "悲伤", ["伤感", "哀伤", "sad"]),
    _entry(EMOTION, "浪漫", ["甜蜜", "romantic"]),
    _entry(EMOTION, "激昂", ["激动", "热血", "epic"]),
    _entry(EMOTION, "悲壮", ["壮烈"]),
    _entry(EMOTION, "温馨", ["温暖", "warm"]),
    # Scenarios
    _entry(SCENARIO, "追逐", ["追击", "追赶", "chase"], ["警匪片", "动作片"]),
    _entry(SCENARIO, "潜入", ["潜行", "渗透", "stealth"], ["警匪片", "谍战片", "动作片"]),
    _entry(SCENARIO, "对峙", ["对决", "僵持", "standoff"], ["警匪片", "推理剧", "动作片"]),
    _entry(SCENARIO, "调查", ["搜查", "侦查", "investigation"], ["推理剧", "警匪片"]),
    _entry(SCENARIO, "埋伏", ["伏击", "ambush"], ["警匪片", "谍战片"]),
    _entry(SCENARIO, "回忆闪回", ["回忆", "闪回", "flashback"]),
    _entry(SCENARIO, "告白", ["表白", "confession"], ["校园剧", "爱情片"]),
    # Instruments
    _entry(INSTRUMENT, "钢琴", ["piano"]),
    _entry(INSTRUMENT, "弦乐", ["小提琴", "大提琴", "strings"]),
    _entry(INSTRUMENT, "鼓", ["打击乐", "drums", "percussion"]),
    _entry(INSTRUMENT, "合成器", ["电子合成器", "synth", "synthesizer"]),
    _entry(INSTRUMENT, "吉他", ["guitar"]),
    # Styles
    _entry(STYLE, "管弦乐", ["交响", "orchestral"]),
    _entry(STYLE, "电子", ["电子乐", "electronic"]),
    _entry(STYLE, "氛围音乐", ["氛围", "ambient"]),
    _entry(STYLE, "摇滚", ["rock"]),
]


SEED_LINKAGE: list[LinkageRule] = [
    LinkageRule(film_type="警匪片", primary_emotion="紧张", terms=["追逐", "对峙", "潜入"]),
    LinkageRule(film_type="警匪片", primary_emotion="冷静", terms=["调查", "潜入"]),
    LinkageRule(film_type="警匪片", primary_emotion="悲壮", terms=["埋伏"]),
    LinkageRule(film_type="推理剧", primary_emotion="冷静", terms=["调查"]),
    LinkageRule(film_type="推理剧", primary_emotion="悬疑", terms=["调查", "对峙"]),
    LinkageRule(film_type="校园剧", primary_emotion="浪漫", terms=["回忆闪回"]),
    LinkageRule(film_type="校园剧", primary_emotion="悲伤", terms=["回忆闪回"]),
    LinkageRule(film_type="动作片", primary_emotion="紧张", terms=["追逐"]),
    LinkageRule(film_type="动作片", primary_emotion="激昂", terms=["追逐"]),
]
